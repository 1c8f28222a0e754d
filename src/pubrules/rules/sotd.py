# src/pubrules/rules/sotd.py
"""Rules about the 'Status of This Document' section."""
import logging
import re

from pubrules.core.rule_registry import register_rule

logger = logging.getLogger(__name__)

SOTD_INTRO_RE = re.compile(
    r"this section describes the status of this document at the time of its publication", re.IGNORECASE
)
TR_INDEX_RE = re.compile(r"^https://www\.w3\.org/TR/?$")
STABILITY_RE = re.compile(
    r"may be updated, replaced,? or obsoleted by other documents at any time", re.IGNORECASE
)

PATENT_POLICIES = {
    "pp2002": "https://www.w3.org/Consortium/Patent-Policy-20040205/",
    "pp2004": "https://www.w3.org/Consortium/Patent-Policy-20040205/",
    "pp2017": "https://www.w3.org/Consortium/Patent-Policy-20170801/",
    "pp2020": "https://www.w3.org/Consortium/Patent-Policy-20200915/",
}


@register_rule("sotd/supersedable", codes=["no-sotd-intro", "no-sotd-tr"])
def check_supersedable(doc, config, resolver, report):
    """Rule: SOTD opens with the boilerplate that points at the TR index."""
    view = doc.structure
    if not SOTD_INTRO_RE.search(view.sotd_text):
        report.error("no-sotd-intro")
    if not any(TR_INDEX_RE.match(href) for href in view.sotd_links):
        report.error("no-sotd-tr")


@register_rule("sotd/pp", codes=["undefined", "no-pp", "joint-publication"])
def check_patent_policy(doc, config, resolver, report):
    """
    Rule: Recommendation-track documents link to the patent policy they are
    published under. Joint publications get a warning so the team double
    checks the other groups' disclosures.
    """
    if not config.get("rec_track_status"):
        return
    policy = config.get("patent_policy")
    if policy not in PATENT_POLICIES:
        report.error("undefined", patent_policy=policy)
        return

    expected = PATENT_POLICIES[policy]
    if expected not in (href.split("#", 1)[0] for href in doc.structure.sotd_links):
        report.error("no-pp", expected=expected)

    if len(doc.deliverer_ids) > 1 and not config.get("no_rec_track"):
        logger.debug("Joint publication by deliverers %s", doc.deliverer_ids)
        report.warning("joint-publication", deliverers=list(doc.deliverer_ids))


@register_rule("sotd/stability", codes=["no-stability"])
def check_stability(doc, config, resolver, report):
    if config.get("stability_warning") is not True:
        return
    if not STABILITY_RE.search(doc.structure.sotd_text):
        report.error("no-stability", long_status=config.get("long_status"))
