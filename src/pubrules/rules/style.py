# src/pubrules/rules/style.py
import logging

from pubrules.core.managers.config_manager import config_manager
from pubrules.core.rule_registry import register_rule

logger = logging.getLogger(__name__)


def _strip_sheet_url(href: str) -> str:
    href = href.strip().split("?", 1)[0].split("#", 1)[0]
    return href[:-4] if href.endswith(".css") else href


@register_rule("style/sheet", codes=["not-found"])
def check_style_sheet(doc, config, resolver, report):
    """
    Rule: the last stylesheet linked by the document is the one for its
    status, e.g. https://www.w3.org/StyleSheets/TR/2021/W3C-WD.
    """
    sheet = config.get("style_sheet")
    if not sheet:
        logger.debug("No style sheet configured; skipping.")
        return
    expected = config_manager.get_nested("stylesheets.base_url", "https://www.w3.org/StyleSheets/TR/2021/") + sheet
    links = doc.structure.select("link[rel~=stylesheet][href]")
    if not links or _strip_sheet_url(links[-1]["href"]) != expected:
        report.error("not-found", expected=expected)


@register_rule("style/back-to-top", codes=["not-found"])
def check_back_to_top(doc, config, resolver, report):
    if not doc.structure.exists("#back-to-top"):
        report.warning("not-found", selector="#back-to-top")


@register_rule("style/body-toc-sidebar", codes=["class-found"])
def check_body_toc_sidebar(doc, config, resolver, report):
    """Rule: <body> does not force the sidebar table of contents."""
    if "toc-sidebar" in doc.structure.body_classes:
        report.error("class-found", cls="toc-sidebar")
