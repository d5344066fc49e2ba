"""
Resolves HLS key tags into decryption parameters and decrypts AES-128 segments.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

from Crypto.Cipher import AES
from Crypto.Util.Padding import unpad

from livestream_dl.exceptions import EncryptionError
from livestream_dl.models.segment import RemoteResource
from livestream_dl.utils.url import make_absolute_url

if TYPE_CHECKING:
    from livestream_dl.net.client import HttpClient

log = logging.getLogger(__name__)

KEY_SIZE = 16
IV_SIZE = 16


class KeyMethod(Enum):
    """The METHOD attribute of an EXT-X-KEY tag."""

    NONE = "NONE"
    AES_128 = "AES-128"
    SAMPLE_AES = "SAMPLE-AES"
    SAMPLE_AES_CTR = "SAMPLE-AES-CTR"

    @classmethod
    def parse(cls, value: Optional[str]) -> "KeyMethod":
        try:
            return cls((value or "NONE").strip().upper())
        except ValueError:
            raise EncryptionError(f"Invalid encryption method: {value}") from None


def derive_iv(media_sequence: int) -> bytes:
    """
    Computes the implicit IV of a segment: its media sequence number as big-endian
    bytes, right-aligned in a zero-filled 16 byte buffer.
    """
    return media_sequence.to_bytes(IV_SIZE, "big")


def parse_iv(value: str) -> bytes:
    """Parses an explicit IV given as a hex string with an optional 0x prefix."""
    text = value.strip()
    if text[:2].lower() == "0x":
        text = text[2:]
    try:
        iv = bytes.fromhex(text)
    except ValueError:
        raise EncryptionError(f"Malformed IV: {value}") from None
    if len(iv) != IV_SIZE:
        raise EncryptionError(f"IV must be {IV_SIZE} bytes, got {len(iv)}: {value}")
    return iv


def decrypt_aes128(data: bytes, key: bytes, iv: bytes) -> bytes:
    """AES-128-CBC decryption with PKCS7 unpadding."""
    try:
        cipher = AES.new(key, AES.MODE_CBC, iv)
        return unpad(cipher.decrypt(data), AES.block_size)
    except ValueError as e:
        raise EncryptionError(f"Failed to decrypt segment: {e}") from e


async def fetch_key(client: "HttpClient", resource: RemoteResource) -> bytes:
    """Downloads a key; the first 16 bytes of the response are the AES key."""
    log.debug(f"Fetching encryption key from {resource.url}")
    body = (await client.fetch(resource)).data
    if len(body) < KEY_SIZE:
        raise EncryptionError(
            f"Encryption key from {resource.url} is {len(body)} bytes, expected {KEY_SIZE}"
        )
    return body[:KEY_SIZE]


@dataclass(frozen=True)
class Encryption:
    """
    Decryption parameters for the segments following one key tag.

    `key` is None for unencrypted segments. `iv` is None when the IV is derived
    from each segment's media sequence number.
    """

    method: KeyMethod = KeyMethod.NONE
    key: Optional[RemoteResource] = None
    iv: Optional[bytes] = None

    @classmethod
    def none(cls) -> "Encryption":
        return cls()

    @classmethod
    def from_key_tag(
        cls,
        method: Optional[str],
        uri: Optional[str],
        iv: Optional[str],
        keyformat: Optional[str],
        base_url: str,
    ) -> "Encryption":
        """
        Builds the encryption for an EXT-X-KEY tag.

        Raises:
            EncryptionError: For a missing key URI, an unsupported or invalid
            method, a non-identity key format or a malformed IV.
        """
        key_method = KeyMethod.parse(method)
        if key_method is KeyMethod.NONE:
            return cls.none()
        if key_method is not KeyMethod.AES_128:
            raise EncryptionError(f"Unsupported encryption method: {key_method.value}")
        if not uri:
            raise EncryptionError("No URI found for AES-128 key")
        if keyformat and keyformat != "identity":
            raise EncryptionError(f"Invalid keyformat: {keyformat}")

        return cls(
            method=KeyMethod.AES_128,
            key=RemoteResource(make_absolute_url(base_url, uri)),
            iv=parse_iv(iv) if iv else None,
        )

    @property
    def is_encrypted(self) -> bool:
        return self.method is KeyMethod.AES_128

    def iv_for(self, media_sequence: int) -> bytes:
        return self.iv if self.iv is not None else derive_iv(media_sequence)

    async def decrypt(self, client: "HttpClient", data: bytes, media_sequence: int) -> bytes:
        """Decrypts a segment payload, fetching the key first."""
        if not self.is_encrypted:
            return data
        key = await fetch_key(client, self.key)
        return decrypt_aes128(data, key, self.iv_for(media_sequence))
