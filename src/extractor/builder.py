# src/extractor/builder.py
import logging
import re
from typing import Iterable, List, Optional, Tuple, TypeVar, Union

from bs4 import BeautifulSoup

from pubrules.core.errors import ExtractionError
from .dates import parse_human_date, parse_iso_date
from .model import DocumentModel
from .structure import HeaderEntry, StructuralView, normalize_space

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Ordered: the first pattern found in the state line wins
PROFILE_PATTERNS: Tuple[Tuple[re.Pattern, str], ...] = tuple(
    (re.compile(pattern, re.IGNORECASE), code) for pattern, code in (
        (r"editor['’]?s draft", "ED"),
        (r"candidate recommendation draft", "CRD"),
        (r"candidate recommendation", "CR"),
        (r"proposed recommendation", "PR"),
        (r"first public working draft", "FPWD"),
        (r"working draft", "WD"),
        (r"draft registry", "DRY"),
        (r"\bregistry\b", "RY"),
        (r"draft note", "DNOTE"),
        (r"\bnote\b", "NOTE"),
        (r"\bstatement\b", "STMT"),
        (r"\brecommendation\b", "REC"),
    )
)

REC_TRACK_PROFILES = frozenset({"FPWD", "WD", "CR", "CRD", "PR", "REC"})

PROCESS_LINK_RE = re.compile(r"/(?:Consortium/Process|policies/process|\d{4}/Process-\d+)", re.IGNORECASE)
PP_IMPL_RE = re.compile(r"/2004/01/pp-impl/(\d+)(?:/|$)")
_DATE = r"(\d{1,2}\s+[A-Z][a-z]+\s+\d{4})"
FEEDBACK_DUE_RES = (
    re.compile(r"advance to Proposed Recommendation any earlier than\s+" + _DATE, re.IGNORECASE),
    re.compile(r"(?:feedback|comments)[^.]*?(?:due|by|before|until)\s+" + _DATE, re.IGNORECASE),
)
PR_REVIEWS_DUE_RE = re.compile(r"review[^.]*?(?:by|until|before|through)\s+" + _DATE, re.IGNORECASE)


def _unique(items: Iterable[T]) -> Tuple[T, ...]:
    """Deduplicates while keeping the first-seen order."""
    seen: List[T] = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return tuple(seen)


def _split_ids(raw: str) -> List[int]:
    ids = []
    for token in re.split(r"[\s,]+", raw or ""):
        if token.isdigit():
            ids.append(int(token))
        elif token:
            logger.debug("Ignoring non-numeric identifier %r", token)
    return ids


class DocumentExtractor:
    """
    Parses raw HTML into a DocumentModel.

    Extraction is a pure function of the markup (plus the URL it came from).
    Values are captured as written: a malformed version URL is kept so that
    rules can judge it.
    """

    def __init__(self, parser: str = "html.parser"):
        self.parser = parser

    def extract(self, html: Union[str, bytes, None], url: Optional[str] = None) -> DocumentModel:
        """
        Args:
            html: The raw document, as text or bytes (bytes are sniffed by bs4).
            url: The address the document was loaded from, if any.

        Raises:
            ExtractionError: if there is no document to speak of.
        """
        if html is None or not html.strip():
            raise ExtractionError("Document is empty", url)

        if isinstance(html, str):
            html = html.replace("\ufeff", "")

        try:
            soup = BeautifulSoup(html, self.parser)
        except Exception as e:
            # bs4 surfaces parser failures as a mix of exception types
            raise ExtractionError(f"Document could not be parsed: {e}", url) from e

        if soup.find(True) is None:
            raise ExtractionError("Document contains no HTML elements", url)

        view = StructuralView(soup, url)

        this_version = self._entry_value(view, "this_version")
        previous_version = self._entry_value(view, "previous_version")
        profile = self._profile(view, previous_version)
        informative = "informative only" in view.sotd_text.lower()
        editor_names, editor_ids = self._editors(view.header_entry("editors"))

        model = DocumentModel(
            url=url,
            profile=profile,
            title=self._title(view),
            doc_date=self._doc_date(view),
            this_version=this_version,
            latest_version=self._entry_value(view, "latest_version"),
            previous_version=previous_version,
            editor_names=editor_names,
            editor_ids=editor_ids,
            deliverer_ids=self._deliverers(view),
            informative=informative,
            rectrack=self._rectrack(view, profile, informative),
            process=self._process(view),
            editors_draft=self._entry_value(view, "editors_draft"),
            implementation_feedback_due=self._due_date(view, FEEDBACK_DUE_RES) if profile in ("CR", "CRD") else None,
            pr_reviews_due=self._due_date(view, (PR_REVIEWS_DUE_RE,)) if profile == "PR" else None,
            implementation_report=self._entry_value(view, "implementation_report"),
            errata=self._entry_value(view, "errata"),
            structure=view,
        )
        logger.debug("Extracted metadata for %s: profile=%s title=%r", url or "<local>", profile, model.title)
        return model

    # --- Individual facts ---

    @staticmethod
    def _entry_value(view: StructuralView, key: str) -> Optional[str]:
        entry = view.header_entry(key)
        return entry.value if entry is not None else None

    @staticmethod
    def _title(view: StructuralView) -> Optional[str]:
        title = view.text("h1#title")
        if title:
            return title
        return view.head_title or None

    @staticmethod
    def _profile(view: StructuralView, previous_version: Optional[str]) -> Optional[str]:
        state = view.state_line
        if not state:
            return None
        for pattern, code in PROFILE_PATTERNS:
            if pattern.search(state):
                if code == "WD" and previous_version is None:
                    return "FPWD"
                return code
        logger.debug("Unrecognised document status line: %r", state)
        return None

    @staticmethod
    def _doc_date(view: StructuralView) -> Optional[str]:
        published = view.select_one("time.dt-published[datetime]")
        if published is not None:
            parsed = parse_iso_date(published["datetime"])
            if parsed:
                return parsed.isoformat()
        parsed = parse_human_date(view.state_line or "")
        return parsed.isoformat() if parsed else None

    @staticmethod
    def _editors(entry: Optional[HeaderEntry]) -> Tuple[Tuple[str, ...], Tuple[int, ...]]:
        if entry is None:
            return (), ()
        names: List[str] = []
        ids: List[int] = []
        for dd in entry.dds:
            ids.extend(_split_ids(dd.get("data-editor-id", "")))
            name_node = dd.select_one(".p-name") or dd.find("a")
            if name_node is not None:
                name = normalize_space(name_node.get_text(" "))
            else:
                name = normalize_space(dd.get_text(" ")).split(",")[0].strip()
            if name:
                names.append(name)
        return _unique(names), _unique(ids)

    @staticmethod
    def _deliverers(view: StructuralView) -> Tuple[int, ...]:
        ids: List[int] = []
        for node in view.select("[data-deliverer]"):
            ids.extend(_split_ids(node.get("data-deliverer", "")))
        for href in view.sotd_links:
            match = PP_IMPL_RE.search(href)
            if match:
                ids.append(int(match.group(1)))
        return _unique(ids)

    @staticmethod
    def _rectrack(view: StructuralView, profile: Optional[str], informative: bool) -> bool:
        if profile in REC_TRACK_PROFILES:
            return True
        return not informative and "recommendation track" in view.sotd_text.lower()

    @staticmethod
    def _process(view: StructuralView) -> Optional[str]:
        for href in view.sotd_links:
            if PROCESS_LINK_RE.search(href):
                return href
        return None

    @staticmethod
    def _due_date(view: StructuralView, patterns: Iterable[re.Pattern]) -> Optional[str]:
        for pattern in patterns:
            match = pattern.search(view.sotd_text)
            if match:
                parsed = parse_human_date(match.group(1))
                if parsed:
                    return parsed.isoformat()
        return None
