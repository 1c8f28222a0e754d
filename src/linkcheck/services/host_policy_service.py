# src/linkcheck/services/host_policy_service.py
import logging
from typing import Iterable, List, Optional, Tuple

from linkcheck.model import HostReliability
from linkcheck.utils.url_utils import UrlUtils
from pubrules.core.managers.config_manager import config_manager

logger = logging.getLogger(__name__)


class HostPolicy:
    """
    Static allow/deny list of hosts that are known to be flaky.

    Entries are either a bare host ('dev.w3.org') or a host plus path prefix
    ('www.w3.org/Bugs'). The longest matching entry decides, so a reliable
    'www.w3.org/TR' can carve an exception out of a broader unreliable entry.
    """

    def __init__(self, unreliable: Iterable[str] = (), reliable: Iterable[str] = ()):
        self._entries: List[Tuple[str, HostReliability]] = []
        for entry in unreliable:
            self._entries.append((self._clean(entry), HostReliability.UNRELIABLE))
        for entry in reliable:
            self._entries.append((self._clean(entry), HostReliability.RELIABLE))
        # Longest prefix first
        self._entries.sort(key=lambda item: len(item[0]), reverse=True)

    @classmethod
    def from_config(cls) -> "HostPolicy":
        return cls(
            unreliable=config_manager.get_nested("reliability.unreliable_hosts", []),
            reliable=config_manager.get_nested("reliability.reliable_hosts", []),
        )

    @staticmethod
    def _clean(entry: str) -> str:
        entry = entry.strip().lower()
        for scheme in ("https://", "http://"):
            if entry.startswith(scheme):
                entry = entry[len(scheme):]
        return entry.rstrip("/")

    def _match(self, url: str) -> Optional[Tuple[str, HostReliability]]:
        if not UrlUtils.is_http_url(url):
            return None
        target = UrlUtils.host_and_path(url)
        host = target.split("/", 1)[0]
        for entry, verdict in self._entries:
            if "/" in entry:
                entry_host, entry_path = entry.split("/", 1)
                if host == entry_host and target[len(host):].lower().startswith("/" + entry_path):
                    return entry, verdict
            elif host == entry:
                return entry, verdict
        return None

    def classify(self, url: str) -> HostReliability:
        """Classifies one URL without touching the network."""
        match = self._match(url)
        return match[1] if match else HostReliability.RELIABLE

    def unreliable_hosts(self, urls: Iterable[str]) -> Tuple[str, ...]:
        """Returns the host of every URL in the sequence that the policy distrusts."""
        flagged: List[str] = []
        for url in urls:
            if self.classify(url) is HostReliability.UNRELIABLE:
                host = UrlUtils.host_and_path(url).split("/", 1)[0]
                if host not in flagged:
                    flagged.append(host)
        return tuple(flagged)
