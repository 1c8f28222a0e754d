# src/pubrules/rules/links.py
"""Rules about hyperlinks and the resources a document loads."""
import asyncio
import logging

from linkcheck.model import HostReliability, LinkStatus
from linkcheck.services.host_policy_service import HostPolicy
from linkcheck.utils.url_utils import UrlUtils
from pubrules.core.managers.config_manager import config_manager
from pubrules.core.rule_registry import register_rule

logger = logging.getLogger(__name__)


@register_rule("links/internal", codes=["anchor"])
def check_internal_links(doc, config, resolver, report):
    """Rule: every '#fragment' link points at an id that exists in the document."""
    ids = doc.structure.ids
    for anchor in doc.structure.anchors:
        href = anchor["href"].strip()
        if href.startswith("#") and len(href) > 1 and href[1:] not in ids:
            report.error("anchor", link=href)


@register_rule("links/reliability", codes=["unreliable-link"])
def check_reliability(doc, config, resolver, report):
    """
    Rule: warn about every link into a host known to be unstable. The check
    is static (host policy only), reachability is not looked at.
    """
    policy = resolver.policy if resolver is not None else HostPolicy.from_config()
    for anchor in doc.structure.anchors:
        url = UrlUtils.normalize_url(doc.url, anchor["href"].strip())
        if policy.classify(url) is HostReliability.UNRELIABLE:
            report.warning("unreliable-link", link=url)


def _allowed(url: str) -> bool:
    return any(url.startswith(prefix) for prefix in config_manager.get_nested("linkchecker.allowed_prefixes", []))


@register_rule("links/linkchecker", codes=[
    "not-same-folder", "response-error", "response-error-with-redirect", "display",
])
async def check_resources(doc, config, resolver, report):
    """
    Rule: the resources a document embeds (images, scripts, stylesheets...)
    live next to it and can be retrieved.

    Resources outside the document's folder are errors unless they are on the
    shared allow list; the others are resolved, following redirects. A list
    of everything checked is reported once as a 'display' warning.
    """
    if not doc.url or resolver is None:
        logger.debug("No public URL for the document; skipping resource check.")
        return

    urls = []
    for raw in doc.structure.resources:
        url = UrlUtils.normalize_url(doc.url, raw)
        if UrlUtils.is_http_url(url) and url not in urls:
            urls.append(url)
    if not urls:
        return

    local = []
    for url in urls:
        if _allowed(url):
            continue
        if UrlUtils.is_same_folder(url, doc.url):
            local.append(url)
        else:
            report.error("not-same-folder", link=url)

    resolutions = await asyncio.gather(*(resolver.resolve(url, same_origin_base=doc.url) for url in local))
    for resolution in resolutions:
        if resolution.status is LinkStatus.BROKEN:
            report.error(
                "response-error", link=resolution.url,
                status=resolution.status_code, error=resolution.error,
            )
        elif resolution.status is LinkStatus.REDIRECTED_THEN_BROKEN:
            report.error(
                "response-error-with-redirect", link=resolution.url, final=resolution.final_url,
                chain=list(resolution.redirect_chain), status=resolution.status_code,
            )

    report.warning("display", links=urls)
