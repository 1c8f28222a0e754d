# src/extractor/model.py
from pathlib import Path
from typing import Any, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .structure import StructuralView

OPTIONAL_FACTS = (
    "process",
    "editors_draft",
    "implementation_feedback_due",
    "pr_reviews_due",
    "implementation_report",
    "errata",
)


def equivalent_sequences(found: Optional[Sequence[Any]], expected: Optional[Sequence[Any]]) -> bool:
    """
    Order-insensitive comparison that still respects multiplicity: both
    sequences have the same length and every expected element is matched by
    a distinct, not yet used element of the other.
    """
    if found is None or expected is None or len(found) != len(expected):
        return False
    unused = list(found)
    for item in expected:
        try:
            unused.remove(item)
        except ValueError:
            return False
    return True


class DocumentSource(BaseModel):
    """Where a document comes from: exactly one of a local file, a URL or in-memory content."""
    model_config = ConfigDict(frozen=True)

    file: Optional[Path] = None
    url: Optional[str] = None
    content: Optional[Union[str, bytes]] = None
    # Public address of a local/in-memory document, used to resolve its links
    base_url: Optional[str] = None

    @model_validator(mode="after")
    def _exactly_one(self):
        given = [name for name in ("file", "url", "content") if getattr(self, name) is not None]
        if len(given) != 1:
            raise ValueError(f"Exactly one of file, url or content is expected, got {given or 'none'}")
        return self

    @property
    def label(self) -> str:
        if self.file is not None:
            return str(self.file)
        if self.url is not None:
            return self.url
        return "<content>"


class DocumentModel(BaseModel):
    """
    Canonical facts of one specification document.

    Built once per validation run and frozen afterwards; every rule of the
    run reads the same instance. Optional facts are None when the document
    does not declare them, which is not the same as an empty string.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    url: Optional[str] = None
    profile: Optional[str] = None
    title: Optional[str] = None
    doc_date: Optional[str] = None

    this_version: Optional[str] = None
    latest_version: Optional[str] = None
    previous_version: Optional[str] = None

    editor_names: Tuple[str, ...] = Field(default_factory=tuple)
    editor_ids: Tuple[int, ...] = Field(default_factory=tuple)
    deliverer_ids: Tuple[int, ...] = Field(default_factory=tuple)

    informative: bool = False
    rectrack: bool = False

    # --- Optional extension facts ---
    process: Optional[str] = None
    editors_draft: Optional[str] = None
    implementation_feedback_due: Optional[str] = None
    pr_reviews_due: Optional[str] = None
    implementation_report: Optional[str] = None
    errata: Optional[str] = None

    structure: Optional[StructuralView] = Field(default=None, exclude=True, repr=False)

    def declared(self, fact: str) -> bool:
        """True when the document declares the given optional fact."""
        if fact not in OPTIONAL_FACTS:
            raise KeyError(fact)
        return getattr(self, fact) is not None

    def metadata(self) -> dict:
        """Plain dict of the extracted facts, optional facts only when declared."""
        data = self.model_dump(exclude={"structure"})
        for fact in OPTIONAL_FACTS:
            if data.get(fact) is None:
                data.pop(fact, None)
        return data
