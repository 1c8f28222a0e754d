# src/linkcheck/model.py
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class LinkStatus(str, Enum):
    REACHABLE = "reachable"
    BROKEN = "broken"
    REDIRECTED_THEN_BROKEN = "redirected-then-broken"


class HostReliability(str, Enum):
    RELIABLE = "reliable"
    UNRELIABLE = "unreliable"


class LinkResolution(BaseModel):
    """
    Outcome of resolving one URL: the redirect chain that was followed,
    whether the final target answered with a 2xx and how trustworthy the
    hosts along the way are.
    """
    model_config = ConfigDict(frozen=True)

    url: str
    final_url: str
    redirect_chain: Tuple[str, ...] = Field(default_factory=tuple)
    status: LinkStatus
    host_reliability: HostReliability = HostReliability.RELIABLE
    unreliable_hosts: Tuple[str, ...] = Field(default_factory=tuple)
    status_code: Optional[int] = None
    error: Optional[str] = None
    # Only set when the caller asked for a same-folder comparison
    same_origin: Optional[bool] = None

    @property
    def redirected(self) -> bool:
        return bool(self.redirect_chain)

    @property
    def is_broken(self) -> bool:
        return self.status is not LinkStatus.REACHABLE
