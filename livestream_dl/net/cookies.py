"""
Loads cookies from a Netscape format cookie file (as exported by browser extensions).
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from livestream_dl.exceptions import ParseCookieError

log = logging.getLogger(__name__)

NETSCAPE_FIELD_COUNT = 7


@dataclass(frozen=True)
class NetscapeCookie:
    """A single cookie bound to the domain it was exported for."""

    domain: str
    name: str
    value: str

    @property
    def url(self) -> str:
        """The https origin the cookie is sent to."""
        return f"https://{self.domain}"


def parse_cookie_line(line: str) -> NetscapeCookie:
    """
    Parses one line of a cookie file.

    The seven tab separated fields are domain, include-subdomains flag, path,
    secure flag, expiry, name and value; only domain, name and value are kept.

    Raises:
        ParseCookieError: If the line does not have exactly seven fields.
    """
    fields = line.split("\t")
    if len(fields) != NETSCAPE_FIELD_COUNT:
        raise ParseCookieError(line)
    domain, _, _, _, _, name, value = fields
    domain = domain.strip().lstrip(".")
    if not domain or not name:
        raise ParseCookieError(line)
    return NetscapeCookie(domain=domain, name=name, value=value)


def load_cookies(path: str | Path) -> list[NetscapeCookie]:
    """
    Reads all cookies from a file. Malformed lines are skipped with a warning.
    """
    cookies = []
    with open(Path(path).expanduser(), encoding="utf-8") as f:
        for raw_line in f:
            line = raw_line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                cookies.append(parse_cookie_line(line))
            except ParseCookieError as e:
                log.warning(f"[yellow]Skipping invalid cookie line:[/yellow] {e.line}")
    log.debug(f"Loaded {len(cookies)} cookies from {path}")
    return cookies
