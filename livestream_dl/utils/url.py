"""
Helpers for resolving playlist links.
"""

from urllib.parse import parse_qsl, urljoin, urlparse


def make_absolute_url(base: str, url: str) -> str:
    """
    Resolves a possibly relative playlist link against the URL of the playlist
    that contained it. Absolute links are returned unchanged.
    """
    return urljoin(base, url.strip())


def query_pairs(url: str) -> list[tuple[str, str]]:
    """Returns the query string of a URL as a list of key/value pairs."""
    return parse_qsl(urlparse(url).query, keep_blank_values=True)
