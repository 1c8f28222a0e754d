# src/pubrules/rules/structure.py
import re

from extractor.structure import normalize_space
from pubrules.core.rule_registry import register_rule

_SECNO_RE = re.compile(r"^[\d.]+\s*")

REQUIRED_H2 = (
    ("abstract", "abstract"),
    ("sotd", "status of this document"),
    ("toc", "table of contents"),
)


@register_rule("structure/h2", codes=[key for key, _ in REQUIRED_H2])
def check_h2(doc, config, resolver, report):
    """Rule: Abstract, Status of This Document and Table of Contents headings are present."""
    titles = {
        _SECNO_RE.sub("", normalize_space(h2.get_text(" ")).lower())
        for h2 in doc.structure.select("h2")
    }
    for key, expected in REQUIRED_H2:
        if expected not in titles:
            report.error(key, expected=expected)


@register_rule("structure/section-ids", codes=["no-id"])
def check_section_ids(doc, config, resolver, report):
    """Rule: every section can be linked to, through its own id or its heading's."""
    for section in doc.structure.select("section"):
        if section.get("id"):
            continue
        heading = section.find(["h2", "h3", "h4", "h5", "h6"])
        if heading is not None and heading.get("id") and heading.find_parent("section") is section:
            continue
        text = normalize_space(heading.get_text(" ")) if heading is not None else ""
        report.error("no-id", heading=text)


@register_rule("structure/canonical", codes=["not-found"])
def check_canonical(doc, config, resolver, report):
    link = doc.structure.select_one("link[rel~=canonical]")
    if link is None or not (link.get("href") or "").strip():
        report.error("not-found", selector="link[rel=canonical][href]")
