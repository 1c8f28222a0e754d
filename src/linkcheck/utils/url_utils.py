# src/linkcheck/utils/url_utils.py
import logging
from typing import Optional
from urllib.parse import urljoin, urlparse, urlunparse

logger = logging.getLogger(__name__)


class UrlUtils:
    """A collection of static methods for URL parsing and manipulation."""

    @staticmethod
    def normalize_url(base_url: Optional[str], url: str) -> str:
        """
        Creates an absolute URL from a base URL and a potentially relative URL,
        without the fragment (fragments never reach the server).
        """
        absolute_url = urljoin(base_url, url) if base_url else url
        parsed_url = urlparse(absolute_url)

        if parsed_url.netloc and not parsed_url.path:
            parsed_url = parsed_url._replace(path='/')

        return urlunparse(parsed_url._replace(fragment=''))

    @staticmethod
    def is_http_url(url: str) -> bool:
        """True for absolute http(s) URLs with a host."""
        if not isinstance(url, str):
            return False
        try:
            parsed = urlparse(url)
        except ValueError:
            return False
        return parsed.scheme in ('http', 'https') and bool(parsed.netloc)

    @staticmethod
    def get_folder(url: str) -> str:
        """
        Returns the 'directory' of a URL: everything up to and including the
        last slash of its path. 'https://a.org/TR/x/doc.html' -> 'https://a.org/TR/x/'.
        """
        parsed = urlparse(url)
        path = parsed.path or '/'
        folder = path[:path.rfind('/') + 1]
        return urlunparse((parsed.scheme, parsed.netloc, folder, '', '', ''))

    @staticmethod
    def is_same_folder(url: str, base_url: str) -> bool:
        """Checks that a URL lives in (or below) the folder of base_url."""
        return UrlUtils.normalize_url(None, url).startswith(UrlUtils.get_folder(base_url))

    @staticmethod
    def host_and_path(url: str) -> str:
        """'https://www.w3.org/Bugs/x?y' -> 'www.w3.org/Bugs/x' (lower-cased host, no port)."""
        parsed = urlparse(url)
        host = (parsed.hostname or '').lower()
        return f"{host}{parsed.path}"
