# src/pubrules/rules/heuristic.py
import re

from extractor.dates import MONTHS
from extractor.structure import normalize_space
from pubrules.core.rule_registry import register_rule

_MONTH = r"(?:%s|%s)\.?" % ("|".join(MONTHS), "|".join(m[:3] for m in MONTHS))
# Anything that looks like a date written by a human
DATE_LIKE_RE = re.compile(
    r"\b(?:\d{1,2}(?:st|nd|rd|th)?\s+%s,?\s+\d{4}|%s\s+\d{1,2}(?:st|nd|rd|th)?,?\s+\d{4})\b" % (_MONTH, _MONTH),
    re.IGNORECASE,
)
# '3 June 2021', no leading zero
CANONICAL_DATE_RE = re.compile(r"^(?:[1-9]|[12]\d|3[01])\s+(?:%s)\s+\d{4}$" % "|".join(MONTHS))


@register_rule("heuristic/date-format", codes=["wrong"])
def check_date_format(doc, config, resolver, report):
    """
    Rule: dates in the document header are written 'D Month YYYY'.
    Every date-like string that is not is reported.
    """
    head = doc.structure.head
    if head is None:
        return
    text = normalize_space(head.get_text(" "))
    for match in DATE_LIKE_RE.finditer(text):
        found = match.group(0)
        if not CANONICAL_DATE_RE.match(found):
            report.error("wrong", found=found)
