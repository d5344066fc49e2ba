"""
Network Layer.

This package handles all HTTP communication: the retrying client shared by
pollers and downloaders, and cookie file loading.
"""

from .client import FetchResult, HttpClient
from .cookies import NetscapeCookie, load_cookies, parse_cookie_line

__all__ = ["FetchResult", "HttpClient", "NetscapeCookie", "load_cookies", "parse_cookie_line"]
