# src/pubrules/model.py
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from extractor.model import DocumentModel


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class RunConfig(BaseModel):
    """
    Immutable per-run configuration visible to every rule.

    Known options are named fields; anything else a profile or the caller
    passes is kept as an extra attribute. Absent options stay None.
    Accepts both snake_case and camelCase keys ('longStatus').
    """
    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    status: Optional[str] = None
    long_status: Optional[str] = None
    previous_version: Optional[bool] = None
    patent_policy: Optional[str] = None
    style_sheet: Optional[str] = None
    cr_type: Optional[str] = None
    amended: Optional[bool] = None
    stability_warning: Optional[Union[bool, str]] = None
    rec_track_status: Optional[bool] = None
    no_rec_track: Optional[bool] = None
    editorial: Optional[bool] = None
    obsoletes: Optional[bool] = None
    rescinds: Optional[bool] = None
    supersedes: Optional[bool] = None
    # ISO date used as "today" by date rules; the run date when absent
    today: Optional[str] = None

    def get(self, key: str, default: Any = None) -> Any:
        """Looks up a named or extra option, returning default when absent."""
        value = getattr(self, key, None)
        if value is None and self.model_extra:
            value = self.model_extra.get(key)
        return default if value is None else value

    def merged(self, overrides: Optional[Dict[str, Any]]) -> "RunConfig":
        """Returns a new config with overrides applied on top of this one."""
        if not overrides:
            return self
        data = self.model_dump(exclude_none=True)
        aliases = {field.alias: name for name, field in type(self).model_fields.items() if field.alias}
        for key, value in overrides.items():
            data[aliases.get(key, key)] = value
        return RunConfig.model_validate(data)


class Profile(BaseModel):
    """A named, ordered selection of rules plus the configuration they run with."""
    model_config = ConfigDict(frozen=True)

    name: str
    rules: Tuple[str, ...]
    config: RunConfig = Field(default_factory=RunConfig)

    @field_validator("rules", mode="before")
    @classmethod
    def _as_tuple(cls, v: Any) -> Tuple[str, ...]:
        if isinstance(v, str):
            return (v,)
        return tuple(v)


class Finding(BaseModel):
    """
    A single error or warning reported by a rule.
    Identity is 'category.rule.key'; detail is free-form.
    """
    model_config = ConfigDict(frozen=True)

    category: str
    rule: str
    key: str
    severity: Severity
    detail: Dict[str, Any] = Field(default_factory=dict)

    @property
    def rule_id(self) -> str:
        return f"{self.category}/{self.rule}"

    @property
    def identity(self) -> str:
        return f"{self.category}.{self.rule}.{self.key}"


class RunException(BaseModel):
    """Payload of an 'exception' event: what went wrong and, if known, in which rule."""
    model_config = ConfigDict(frozen=True)

    message: str
    rule: Optional[str] = None
    kind: str = "fault"


class RunResult(BaseModel):
    """What a caller gets back once a run has terminated."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    profile: Optional[str] = None
    meta: Optional[DocumentModel] = None
    findings: List[Finding] = Field(default_factory=list)
    exceptions: List[RunException] = Field(default_factory=list)
    dispatched: List[str] = Field(default_factory=list)
    unsettled: List[str] = Field(default_factory=list)
    timed_out: bool = False
    fatal: bool = False

    @property
    def errors(self) -> List[Finding]:
        return [f for f in self.findings if f.severity is Severity.ERROR]

    @property
    def warnings(self) -> List[Finding]:
        return [f for f in self.findings if f.severity is Severity.WARNING]

    @property
    def complete(self) -> bool:
        """False when the finding list must not be read as exhaustive."""
        return not (self.fatal or self.timed_out)
