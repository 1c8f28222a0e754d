# src/pubrules/rules/echidna.py
"""Checks applied to automated publications only."""
import logging
from datetime import date

from pubrules.core.rule_registry import register_rule

logger = logging.getLogger(__name__)


@register_rule("echidna/todays-date", codes=["wrong-date"])
def check_todays_date(doc, config, resolver, report):
    """
    Rule: an automatically published document is dated today.
    'today' comes from the run configuration when set (ISO date), else the clock.
    """
    today = config.get("today") or date.today().isoformat()
    if doc.doc_date != today:
        logger.debug("Document date %s differs from publication date %s", doc.doc_date, today)
        report.error("wrong-date", found=doc.doc_date, expected=today)
