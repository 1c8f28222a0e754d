# src/pubrules/core/rule.py
import abc
import inspect
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable, Optional, Tuple, Union

if TYPE_CHECKING:
    from extractor.model import DocumentModel
    from linkcheck.services.link_resolver_service import LinkResolver
    from pubrules.core.run_state import RuleReporter
    from pubrules.model import RunConfig

RuleResult = Union[None, Awaitable[None]]


def split_rule_id(rule_id: str) -> Tuple[str, str]:
    """'headers/dl' -> ('headers', 'dl')"""
    category, sep, name = rule_id.partition("/")
    if not sep or not category or not name or "/" in name:
        raise ValueError(f"Rule ids look like 'category/name', got {rule_id!r}")
    return category, name


class Rule(metaclass=abc.ABCMeta):
    """
    Abstract base class for all rules.

    A rule reads the shared DocumentModel (and, if it needs the network, the
    run's LinkResolver) and reports findings through the RuleReporter it is
    given. `run` may be a plain method or a coroutine function; plain rules
    are executed in a worker thread, coroutine rules on the event loop.

    Completion is signalled with `report.done()`, or implicitly when `run`
    returns (after awaiting whatever awaitable it returned). Nothing may be
    reported after that.

    A rule that keeps working after `run` returns (a task it scheduled, a
    callback it registered) sets `explicit_done`, or calls `report.defer()`
    before returning. Returning then settles nothing: the run waits for
    `report.done()`, and the run timeout covers rules that never call it.
    """

    rule_id: str = ""
    codes: Tuple[str, ...] = ()
    explicit_done: bool = False

    @property
    def category(self) -> str:
        return split_rule_id(self.rule_id)[0]

    @property
    def name(self) -> str:
        return split_rule_id(self.rule_id)[1]

    @property
    def is_async(self) -> bool:
        return inspect.iscoroutinefunction(self.run)

    @abc.abstractmethod
    def run(
            self,
            doc: "DocumentModel",
            config: "RunConfig",
            resolver: Optional["LinkResolver"],
            report: "RuleReporter",
    ) -> RuleResult:
        raise NotImplementedError("Every rule must implement a 'run' method.")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.rule_id}>"


class FunctionRule(Rule):
    """Adapts a plain (or async) check function to the Rule interface."""

    def __init__(
            self,
            rule_id: str,
            func: Callable[..., Any],
            codes: Iterable[str] = (),
            explicit_done: bool = False,
    ):
        split_rule_id(rule_id)
        self.rule_id = rule_id
        self.func = func
        self.codes = tuple(sorted(set(codes)))
        self.explicit_done = explicit_done
        self.__doc__ = func.__doc__

    @property
    def is_async(self) -> bool:
        return inspect.iscoroutinefunction(self.func)

    def run(self, doc, config, resolver, report) -> RuleResult:
        return self.func(doc, config, resolver, report)
