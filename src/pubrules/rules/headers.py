# src/pubrules/rules/headers.py
"""Rules about the document header: div.head, its title, logo and metadata <dl>."""
import logging
import re
from typing import Optional

from extractor.structure import HeaderEntry, normalize_space
from pubrules.core.rule_registry import register_rule

logger = logging.getLogger(__name__)

# https://www.w3.org/TR/2021/WD-foo-bar-20210603/
DATED_URL_RE = re.compile(r"^https://www\.w3\.org/TR/(\d{4})/([A-Z]+)-(.+)-(\d{8})/$")
# https://www.w3.org/TR/foo-bar/
LATEST_URL_RE = re.compile(r"^https://www\.w3\.org/TR/([^/]+)/$")

LOGO_SRC_RE = re.compile(r"logos/W3C|w3c_home", re.IGNORECASE)

# Status as it appears in dated URLs
URL_STATUS = {"FPWD": "WD", "DNOTE": "DNOTE", "WG-NOTE": "NOTE", "IG-NOTE": "NOTE"}


def shortname(url: Optional[str]) -> Optional[str]:
    """Short name encoded in a dated or latest-version TR URL."""
    if not url:
        return None
    match = DATED_URL_RE.match(url)
    if match:
        return match.group(3)
    match = LATEST_URL_RE.match(url)
    return match.group(1) if match else None


@register_rule("headers/div-head", codes=["not-found"])
def check_div_head(doc, config, resolver, report):
    """Rule: the document has a <div class="head">."""
    if doc.structure.head is None:
        report.error("not-found", selector="div.head")


@register_rule("headers/title", codes=["not-found"])
def check_title(doc, config, resolver, report):
    if not doc.structure.head_title:
        report.error("not-found", element="title")


@register_rule("headers/hr", codes=["not-found"])
def check_hr(doc, config, resolver, report):
    """Rule: an <hr> closes the header, inside div.head or right after it."""
    head = doc.structure.head
    if head is not None:
        if head.find("hr") is not None:
            return
        following = head.find_next_sibling(True)
        if following is not None and following.name == "hr":
            return
    report.error("not-found", element="hr")


@register_rule("headers/logo", codes=["not-found"])
def check_logo(doc, config, resolver, report):
    head = doc.structure.head
    if head is not None:
        for img in head.select("a[href] img[src]"):
            if LOGO_SRC_RE.search(img["src"]):
                return
    report.error("not-found", element="logo")


@register_rule("headers/h1-title", codes=["not-found", "not-match"])
def check_h1_title(doc, config, resolver, report):
    """Rule: <h1 id="title"> exists and says the same thing as <title>."""
    h1 = doc.structure.text("h1#title")
    if h1 is None:
        report.error("not-found", selector="h1#title")
        return
    title = doc.structure.head_title or ""
    if h1 != title:
        report.error("not-match", h1=h1, title=title)


@register_rule("headers/copyright", codes=["not-found"])
def check_copyright(doc, config, resolver, report):
    if not doc.structure.exists(".copyright"):
        report.error("not-found", selector=".copyright")


@register_rule("headers/errata", codes=["link-should-be-https"])
def check_errata(doc, config, resolver, report):
    if doc.errata and doc.errata.lower().startswith("http:"):
        report.error("link-should-be-https", link=doc.errata)


class _HeaderChecks:
    """The header <dl> checks, sharing the expected status and the entries found."""

    def __init__(self, doc, config, report):
        self.doc = doc
        self.config = config
        self.report = report
        status = config.get("status") or doc.profile
        self.url_status = URL_STATUS.get(status, status)
        logger.debug("Checking header dl against status %s", self.url_status)

    def run(self):
        view = self.doc.structure
        if view.header_dl is None:
            self.report.error("not-found", what="dl")
        elif view.header_entry("history") is None:
            self.report.error("not-found", what="history")

        this = view.header_entry("this_version")
        latest = view.header_entry("latest_version")
        previous = view.header_entry("previous_version")

        self.check_this(this)
        self.check_latest(latest)
        self.check_previous(previous)
        self.check_order(this, latest, previous)
        self.check_editors(view.header_entry("editors"))

        for fact, key in (("editors_draft", "editors-draft-should-be-https"),
                          ("implementation_report", "implelink-should-be-https")):
            value = getattr(self.doc, fact)
            if value and value.lower().startswith("http:"):
                self.report.error(key, link=value)

    def link_diff(self, entry: HeaderEntry):
        anchor = entry.link
        if anchor is not None and normalize_space(anchor.get_text(" ")) != anchor["href"].strip():
            self.report.error("link-diff", label=entry.label, href=anchor["href"].strip())

    def check_this(self, entry: Optional[HeaderEntry]):
        if entry is None or not entry.value:
            self.report.error("this-version")
            return
        self.link_diff(entry)
        match = DATED_URL_RE.match(entry.value)
        if not match:
            self.report.error("this-syntax", found=entry.value)
            return
        year, url_status, _, stamp = match.groups()
        expected_stamp = self.doc.doc_date.replace("-", "") if self.doc.doc_date else None
        if (self.url_status and url_status != self.url_status) or year != stamp[:4] or (
                expected_stamp and stamp != expected_stamp):
            self.report.error("this-syntax", found=entry.value, status=self.url_status, date=self.doc.doc_date)

    def check_latest(self, entry: Optional[HeaderEntry]):
        if entry is None or not entry.value:
            self.report.error("latest-version")
            return
        self.link_diff(entry)
        if not LATEST_URL_RE.match(entry.value):
            self.report.error("latest-syntax", found=entry.value)

    def check_previous(self, entry: Optional[HeaderEntry]):
        expected = self.config.get("previous_version")
        if entry is None or not entry.value:
            if expected:
                self.report.error("previous-version")
            return
        if not expected:
            self.report.warning("previous-not-needed", found=entry.value)
        self.link_diff(entry)
        if not DATED_URL_RE.match(entry.value):
            self.report.error("previous-syntax", found=entry.value)
            return
        this_name = shortname(self.doc.this_version)
        previous_name = shortname(entry.value)
        if this_name and previous_name and this_name != previous_name:
            self.report.warning("this-previous-shortname", this=this_name, previous=previous_name)

    def check_order(self, this, latest, previous):
        if this is not None and latest is not None and this.index > latest.index:
            self.report.error("this-latest-order")
        if latest is not None and previous is not None and latest.index > previous.index:
            self.report.error("latest-previous-order")

    def check_editors(self, entry: Optional[HeaderEntry]):
        if entry is None or not self.doc.editor_names:
            self.report.error("editor-not-found")
            return
        for dd in entry.dds:
            if not dd.get("data-editor-id"):
                self.report.error("editor-missing-id", editor=normalize_space(dd.get_text(" ")))


@register_rule("headers/dl", codes=[
    "not-found", "this-version", "latest-version", "previous-version",
    "this-syntax", "latest-syntax", "previous-syntax", "link-diff",
    "this-latest-order", "latest-previous-order", "previous-not-needed",
    "this-previous-shortname", "editor-not-found", "editor-missing-id",
    "editors-draft-should-be-https", "implelink-should-be-https",
])
def check_header_dl(doc, config, resolver, report):
    """
    Rule: the header <dl> declares this, latest and (when the profile expects
    one) previous version with well-formed URLs, in that order, plus the
    editors with their identifiers.
    """
    _HeaderChecks(doc, config, report).run()
