"""
Conversion of playlist language tags to the three letter codes ffmpeg expects.
"""

import logging

from langcodes import Language
from langcodes.tag_parser import LanguageTagError

log = logging.getLogger(__name__)


def to_three_letter_code(tag: str | None) -> str | None:
    """
    Converts a BCP 47 style tag such as `en` or `pt-BR` to `eng` or `por-BR`.
    Returns None when the tag cannot be converted.
    """
    if not tag or not tag.strip():
        return None
    try:
        language = Language.get(tag.strip())
        if not language.language:
            return None
        code = language.to_alpha3()
    except (LanguageTagError, LookupError, ValueError) as e:
        log.debug(f"Cannot convert language tag {tag!r}: {e}")
        return None
    if language.territory:
        code += f"-{language.territory}"
    return code
