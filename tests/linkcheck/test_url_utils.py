# tests/linkcheck/test_url_utils.py
import pytest

from linkcheck.utils.url_utils import UrlUtils


@pytest.mark.parametrize("base, url, expected", [
    ("https://www.w3.org/TR/foo/", "image/logo.png", "https://www.w3.org/TR/foo/image/logo.png"),
    ("https://www.w3.org/TR/foo/Overview.html", "../bar/#sec", "https://www.w3.org/TR/bar/"),
    (None, "https://www.w3.org", "https://www.w3.org/"),
    (None, "https://www.w3.org/a#b", "https://www.w3.org/a"),
])
def test_normalize_url(base, url, expected):
    assert UrlUtils.normalize_url(base, url) == expected


@pytest.mark.parametrize("url, expected", [
    ("https://www.w3.org/", True),
    ("http://127.0.0.1:8080/x", True),
    ("ftp://example.org/", False),
    ("//www.w3.org/", False),
    ("not a url", False),
    (None, False),
])
def test_is_http_url(url, expected):
    assert UrlUtils.is_http_url(url) is expected


def test_folder_and_same_folder():
    base = "https://www.w3.org/TR/2021/WD-foo-20210603/Overview.html"
    assert UrlUtils.get_folder(base) == "https://www.w3.org/TR/2021/WD-foo-20210603/"
    assert UrlUtils.is_same_folder("https://www.w3.org/TR/2021/WD-foo-20210603/img/a.png", base)
    assert UrlUtils.is_same_folder("https://www.w3.org/TR/2021/WD-foo-20210603/a.css#x", base)
    assert not UrlUtils.is_same_folder("https://www.w3.org/TR/2021/WD-bar-20210603/a.png", base)
    assert not UrlUtils.is_same_folder("https://www.w3.org/StyleSheets/TR/2021/base.css", base)


def test_host_and_path():
    assert UrlUtils.host_and_path("https://WWW.w3.org:443/Bugs/x?y=1") == "www.w3.org/Bugs/x"
