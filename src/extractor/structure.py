# src/extractor/structure.py
import logging
import re
from dataclasses import dataclass
from functools import cached_property
from typing import Dict, List, Optional, Set, Tuple

from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)

_WS_RE = re.compile(r"\s+")

# dt label (lower-cased, no trailing colon) -> canonical fact name
HEADER_LABELS: Dict[str, str] = {
    "this version": "this_version",
    "latest published version": "latest_version",
    "latest version": "latest_version",
    "previous version": "previous_version",
    "previous versions": "previous_version",
    "editor's draft": "editors_draft",
    "latest editor's draft": "editors_draft",
    "editors draft": "editors_draft",
    "implementation report": "implementation_report",
    "errata": "errata",
    "editor": "editors",
    "editors": "editors",
    "editor(s)": "editors",
    "former editor": "former_editors",
    "former editors": "former_editors",
    "history": "history",
    "feedback": "feedback",
}

# Resources the browser fetches while rendering the page
RESOURCE_SELECTORS: Tuple[Tuple[str, str], ...] = (
    ("img[src]", "src"),
    ("script[src]", "src"),
    ("link[rel~=stylesheet][href]", "href"),
    ("link[rel~=icon][href]", "href"),
    ("source[src]", "src"),
    ("video[src]", "src"),
    ("audio[src]", "src"),
    ("iframe[src]", "src"),
)


def normalize_space(text: Optional[str]) -> str:
    """Collapses runs of whitespace and trims the ends."""
    if not text:
        return ""
    return _WS_RE.sub(" ", text).strip()


def normalize_label(text: str) -> str:
    label = normalize_space(text).lower().replace("’", "'")
    return label.rstrip(":").strip()


@dataclass(frozen=True)
class HeaderEntry:
    """One <dt> of the document header <dl> together with the <dd>s that follow it."""
    index: int
    label: str
    key: Optional[str]
    dt: Tag
    dds: Tuple[Tag, ...]

    @property
    def link(self) -> Optional[Tag]:
        for dd in self.dds:
            anchor = dd.find("a", href=True)
            if anchor is not None:
                return anchor
        return None

    @property
    def value(self) -> Optional[str]:
        """First link target of the entry, else its text; verbatim apart from trimming."""
        anchor = self.link
        if anchor is not None:
            return anchor["href"].strip()
        text = normalize_space(" ".join(dd.get_text(" ") for dd in self.dds))
        return text or None


class StructuralView:
    """
    Lazily-queryable, read-only view over a parsed document.

    Nothing is precomputed: each property is evaluated the first time a rule
    asks for it and memoised. Callers must treat returned Tags as read-only,
    the same tree is shared by every rule of the run.
    """

    def __init__(self, soup: BeautifulSoup, url: Optional[str] = None):
        self._soup = soup
        self.url = url

    # --- Generic queries ---

    def select(self, selector: str) -> List[Tag]:
        return self._soup.select(selector)

    def select_one(self, selector: str) -> Optional[Tag]:
        return self._soup.select_one(selector)

    def exists(self, selector: str) -> bool:
        return self._soup.select_one(selector) is not None

    def text(self, selector: str) -> Optional[str]:
        """Whitespace-normalised text of the first match, or None when absent."""
        node = self.select_one(selector)
        return normalize_space(node.get_text(" ")) if node is not None else None

    # --- Document level facts ---

    @cached_property
    def head_title(self) -> Optional[str]:
        title = self._soup.find("title")
        return normalize_space(title.get_text(" ")) if title is not None else None

    @cached_property
    def body_classes(self) -> Tuple[str, ...]:
        body = self._soup.find("body")
        if body is None:
            return ()
        return tuple(body.get("class") or ())

    @cached_property
    def ids(self) -> Set[str]:
        found = set()
        for node in self._soup.find_all(id=True):
            found.add(node["id"])
        for node in self._soup.find_all("a", attrs={"name": True}):
            found.add(node["name"])
        return found

    @cached_property
    def anchors(self) -> Tuple[Tag, ...]:
        return tuple(self._soup.find_all("a", href=True))

    @cached_property
    def resources(self) -> Tuple[str, ...]:
        """Raw URLs of embedded resources, in document order, duplicates kept once."""
        seen: List[str] = []
        for selector, attr in RESOURCE_SELECTORS:
            for node in self._soup.select(selector):
                value = (node.get(attr) or "").strip()
                if value and value not in seen:
                    seen.append(value)
        return tuple(seen)

    # --- Header block ---

    @cached_property
    def head(self) -> Optional[Tag]:
        return self._soup.find("div", class_="head")

    @cached_property
    def state_line(self) -> Optional[str]:
        """The 'W3C Working Draft, 3 June 2021' line of the header."""
        node = self._soup.find(id="w3c-state")
        if node is None and self.head is not None:
            node = self.head.find("h2")
        return normalize_space(node.get_text(" ")) if node is not None else None

    @cached_property
    def header_dl(self) -> Optional[Tag]:
        if self.head is None:
            return None
        # <details> wraps the dl in recent templates
        return self.head.find("dl")

    @cached_property
    def header_entries(self) -> Tuple[HeaderEntry, ...]:
        dl = self.header_dl
        if dl is None:
            return ()
        entries: List[HeaderEntry] = []
        current_dt: Optional[Tag] = None
        current_dds: List[Tag] = []
        for child in dl.find_all(["dt", "dd"]):
            if child.find_parent("dl") is not dl:
                continue
            if child.name == "dt":
                if current_dt is not None:
                    entries.append(self._entry(len(entries), current_dt, current_dds))
                current_dt, current_dds = child, []
            elif current_dt is not None:
                current_dds.append(child)
        if current_dt is not None:
            entries.append(self._entry(len(entries), current_dt, current_dds))
        return tuple(entries)

    @staticmethod
    def _entry(index: int, dt: Tag, dds: List[Tag]) -> HeaderEntry:
        label = normalize_label(dt.get_text(" "))
        return HeaderEntry(index=index, label=label, key=HEADER_LABELS.get(label), dt=dt, dds=tuple(dds))

    def header_entry(self, key: str) -> Optional[HeaderEntry]:
        for entry in self.header_entries:
            if entry.key == key:
                return entry
        return None

    # --- Status of This Document ---

    @cached_property
    def sotd(self) -> Optional[Tag]:
        node = self._soup.find(id="sotd")
        if node is None:
            return None
        if node.name in ("h2", "h3"):
            parent = node.parent
            return parent if parent is not None and parent.name in ("section", "div") else node
        return node

    @cached_property
    def sotd_text(self) -> str:
        return normalize_space(self.sotd.get_text(" ")) if self.sotd is not None else ""

    @cached_property
    def sotd_links(self) -> Tuple[str, ...]:
        if self.sotd is None:
            return ()
        return tuple(a["href"].strip() for a in self.sotd.find_all("a", href=True))
