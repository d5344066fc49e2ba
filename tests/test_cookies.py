import logging

import pytest

from livestream_dl.exceptions import ParseCookieError
from livestream_dl.net.cookies import load_cookies, parse_cookie_line


def test_well_formed_line_binds_cookie_to_https_domain():
    cookie = parse_cookie_line(".example.com\tTRUE\t/\tTRUE\t1999999999\tsession\tabc123")
    assert cookie.domain == "example.com"
    assert cookie.name == "session"
    assert cookie.value == "abc123"
    assert cookie.url == "https://example.com"


def test_short_line_is_an_error():
    with pytest.raises(ParseCookieError) as excinfo:
        parse_cookie_line("example.com\tTRUE\t/\tsession\tabc")
    assert excinfo.value.line == "example.com\tTRUE\t/\tsession\tabc"


def test_malformed_lines_are_skipped_with_warning(tmp_path, caplog):
    cookie_file = tmp_path / "cookies.txt"
    cookie_file.write_text(
        "# Netscape HTTP Cookie File\n"
        "\n"
        "example.com\tFALSE\t/\tFALSE\t0\ttoken\tt0k3n\n"
        "broken line without tabs\n"
        "cdn.example.com\tFALSE\t/\tTRUE\t0\tauth\tyes\n",
        encoding="utf-8",
    )

    with caplog.at_level(logging.WARNING, logger="livestream_dl"):
        cookies = load_cookies(cookie_file)

    assert [(c.domain, c.name, c.value) for c in cookies] == [
        ("example.com", "token", "t0k3n"),
        ("cdn.example.com", "auth", "yes"),
    ]
    assert "broken line without tabs" in caplog.text
