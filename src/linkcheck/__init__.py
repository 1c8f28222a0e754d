from .model import HostReliability, LinkResolution, LinkStatus
from .services.host_policy_service import HostPolicy
from .services.link_resolver_service import LinkResolver

__all__ = ["HostPolicy", "HostReliability", "LinkResolution", "LinkResolver", "LinkStatus"]
