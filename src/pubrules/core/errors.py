# src/pubrules/core/errors.py
from typing import Optional


class PubrulesError(Exception):
    """Base class for all errors raised by the validator itself."""


class ExtractionError(PubrulesError):
    """
    The document could not be loaded or parsed into a DocumentModel.
    Fatal to the run: no rule is dispatched.
    """

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        super().__init__(f"{message} ({source})" if source else message)


class UnknownRuleError(PubrulesError):
    """A profile references a rule id that is not in the registry."""

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"No rule registered under '{rule_id}'")


class SinkReuseError(PubrulesError):
    """A Sink was handed to a second validation run."""


class ResolverConfigError(PubrulesError, ValueError):
    """The link resolver was called with an unusable base URL or policy."""
