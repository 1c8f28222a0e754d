# src/linkcheck/services/link_resolver_service.py
import asyncio
import logging
from typing import Dict, List, Optional

from yarl import URL

from linkcheck.model import HostReliability, LinkResolution, LinkStatus
from linkcheck.services.host_policy_service import HostPolicy
from linkcheck.services.http_request_service import HttpRequestService, REDIRECT_CODES
from linkcheck.utils.url_utils import UrlUtils
from pubrules.core.errors import ResolverConfigError
from pubrules.core.managers.config_manager import config_manager

logger = logging.getLogger(__name__)


class _Trace:
    """Raw network outcome for one URL, shared by every caller asking for it."""

    def __init__(self, url: str):
        self.url = url
        self.final_url = url
        self.chain: List[str] = []
        self.status_code: Optional[int] = None
        self.error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.status_code is not None and 200 <= self.status_code < 300


class LinkResolver:
    """
    Resolves URLs for one validation run.

    Redirects are followed hop by hop (HEAD, falling back to GET when the
    server refuses HEAD) up to a bounded chain length. Results are cached per
    URL and concurrent lookups of the same URL share a single network
    operation, so two rules checking the same link cause one fetch.
    """

    def __init__(
            self,
            http_service: Optional[HttpRequestService] = None,
            policy: Optional[HostPolicy] = None,
            max_redirects: Optional[int] = None,
    ):
        self._owns_http = http_service is None
        self.http = http_service or HttpRequestService({"session": config_manager.get_nested("session", {})})
        self.policy = policy or HostPolicy.from_config()
        self.max_redirects = max_redirects if max_redirects is not None else self.http.max_redirects

        self._cache: Dict[str, _Trace] = {}
        self._fetch_locks: Dict[str, asyncio.Lock] = {}

    async def __aenter__(self):
        await self.http.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        if self._owns_http:
            await self.http.close()

    async def resolve(self, url: str, same_origin_base: Optional[str] = None) -> LinkResolution:
        """
        Resolves a URL into a LinkResolution.

        Args:
            url: Absolute URL to check (fragment is ignored).
            same_origin_base: Optional document URL; when given, the final
                resolved URL is compared against its folder.

        Raises:
            ResolverConfigError: if same_origin_base is not an absolute http(s) URL.
        """
        if same_origin_base is not None and not UrlUtils.is_http_url(same_origin_base):
            raise ResolverConfigError(f"Malformed base URL for same-origin check: {same_origin_base!r}")

        key = UrlUtils.normalize_url(None, url.strip())
        trace = await self._get_trace(key)

        if trace.ok:
            status = LinkStatus.REACHABLE
        elif trace.chain:
            status = LinkStatus.REDIRECTED_THEN_BROKEN
        else:
            status = LinkStatus.BROKEN

        unreliable = self.policy.unreliable_hosts([trace.url, *trace.chain])
        same_origin = None
        if same_origin_base is not None:
            same_origin = UrlUtils.is_same_folder(trace.final_url, same_origin_base)

        return LinkResolution(
            url=url,
            final_url=trace.final_url,
            redirect_chain=tuple(trace.chain),
            status=status,
            host_reliability=HostReliability.UNRELIABLE if unreliable else HostReliability.RELIABLE,
            unreliable_hosts=unreliable,
            status_code=trace.status_code,
            error=trace.error,
            same_origin=same_origin,
        )

    async def _get_trace(self, key: str) -> _Trace:
        if key in self._cache:
            return self._cache[key]

        if key not in self._fetch_locks:
            self._fetch_locks[key] = asyncio.Lock()

        async with self._fetch_locks[key]:
            if key in self._cache:
                return self._cache[key]
            trace = await self._follow(key)
            self._cache[key] = trace
            return trace

    async def _follow(self, url: str) -> _Trace:
        trace = _Trace(url)
        if not UrlUtils.is_http_url(url):
            trace.error = "Unsupported URL scheme"
            return trace

        visited = {url}
        current = url
        # One request per hop plus the final one
        for _ in range(self.max_redirects + 1):
            hop = await self.http.request_hop(current, "HEAD")
            if hop["status"] in (405, 501):
                hop = await self.http.request_hop(current, "GET")

            status = hop["status"]
            trace.final_url = current
            if status < 0:
                trace.error = hop.get("error") or "Request failed"
                trace.status_code = None
                break

            trace.status_code = status
            location = hop.get("location")
            if status in REDIRECT_CODES and location:
                try:
                    next_url = str(URL(current).join(URL(location)))
                except ValueError:
                    trace.error = f"Invalid redirect location: {location!r}"
                    break
                trace.chain.append(next_url)
                trace.final_url = next_url
                if next_url in visited:
                    trace.error = "Redirect loop"
                    break
                visited.add(next_url)
                current = next_url
                continue

            if not 200 <= status < 300:
                trace.error = f"HTTP {status}"
            break
        else:
            trace.error = f"More than {self.max_redirects} redirects"

        if trace.chain:
            logger.debug("Resolved %s after %d redirects -> %s", url, len(trace.chain), trace.final_url)
        return trace
