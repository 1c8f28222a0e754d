# src/pubrules/core/run_state.py
import asyncio
import logging
import threading
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional

from extractor.model import DocumentModel
from pubrules.core.rule import Rule
from pubrules.core.sink import DONE, END_ALL, EXCEPTION, Sink
from pubrules.model import Finding, RunException, RunResult, Severity

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    EXTRACTING = "extracting"
    RUNNING = "running"
    AGGREGATING = "aggregating"
    TERMINATED = "terminated"


_TRANSITIONS = {
    RunState.IDLE: {RunState.EXTRACTING, RunState.TERMINATED},
    RunState.EXTRACTING: {RunState.RUNNING, RunState.AGGREGATING, RunState.TERMINATED},
    RunState.RUNNING: {RunState.AGGREGATING},
    RunState.AGGREGATING: {RunState.TERMINATED},
    RunState.TERMINATED: set(),
}


class CompletionBarrier:
    """
    Counted join over the dispatched rules.

    Every rule id is dispatched before any rule starts; each settles exactly
    once. When the settled count reaches the dispatched count the barrier
    opens. settle() may be called from worker threads.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop
        self._lock = threading.Lock()
        self._event = asyncio.Event()
        self._dispatched: List[str] = []
        self._settled: List[str] = []

    def dispatch(self, rule_id: str) -> None:
        with self._lock:
            self._dispatched.append(rule_id)

    def settle(self, rule_id: str) -> bool:
        """Marks a rule settled; False when it was not dispatched or already settled."""
        with self._lock:
            if rule_id not in self._dispatched or rule_id in self._settled:
                return False
            self._settled.append(rule_id)
            if len(self._settled) == len(self._dispatched):
                self._loop.call_soon_threadsafe(self._event.set)
            return True

    def seal(self) -> None:
        """Called once dispatching is over; opens at once for an empty rule set."""
        with self._lock:
            if len(self._settled) == len(self._dispatched):
                self._loop.call_soon_threadsafe(self._event.set)

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """True once every rule settled, False if the timeout elapsed first."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout)
            return True
        except asyncio.TimeoutError:
            return False

    @property
    def dispatched(self) -> List[str]:
        with self._lock:
            return list(self._dispatched)

    @property
    def settled_count(self) -> int:
        with self._lock:
            return len(self._settled)

    @property
    def unsettled(self) -> List[str]:
        with self._lock:
            return [r for r in self._dispatched if r not in self._settled]


class RuleReporter:
    """
    The handle a rule reports through.

    Findings go to the run's sink as long as the rule has not completed and
    the run has not terminated. Anything arriving later (a second completion,
    a finding after completion or after termination) is discarded and turned
    into an 'exception' event.
    """

    def __init__(self, run: "ValidationRun", rule: Rule):
        self._run = run
        self.rule_id = rule.rule_id
        self.category = rule.category
        self.name = rule.name
        self._completed = False
        self._deferred = rule.explicit_done

    @property
    def completed(self) -> bool:
        return self._completed

    @property
    def deferred(self) -> bool:
        return self._deferred

    def defer(self) -> None:
        """Completion waits for done() instead of the return of run()."""
        self._deferred = True

    def error(self, key: str, **detail: Any) -> None:
        self._emit(Severity.ERROR, key, detail)

    def warning(self, key: str, **detail: Any) -> None:
        self._emit(Severity.WARNING, key, detail)

    def _emit(self, severity: Severity, key: str, detail: Dict[str, Any]) -> None:
        sink = self._run.sink
        identity = f"{severity.value} '{self.category}.{self.name}.{key}'"
        with sink.lock:
            if self._completed:
                self._run.late_signal(self.rule_id, f"{identity} reported after completion")
                return
            if self._run.closed:
                self._run.late_signal(self.rule_id, f"{identity} reported after the run terminated")
                return
            finding = Finding(category=self.category, rule=self.name, key=key, severity=severity, detail=detail)
            sink.report(severity.value, finding)

    def done(self) -> None:
        sink = self._run.sink
        with sink.lock:
            if self._completed:
                self._run.late_signal(self.rule_id, "completion signalled more than once")
                return
            if self._run.closed:
                self._completed = True
                self._run.late_signal(self.rule_id, "completion signalled after the run terminated")
                return
            self._completed = True
            sink.report(DONE, self.rule_id)
            self._run.barrier.settle(self.rule_id)

    def finish(self) -> None:
        """Implicit completion once run() has returned; no-op after done() or when deferred."""
        with self._run.sink.lock:
            if not self._completed and not self._deferred:
                self.done()

    def fail(self, exc: BaseException) -> None:
        """Converts an uncaught fault of the rule into an 'exception' event and settles the rule."""
        sink = self._run.sink
        message = f"{type(exc).__name__}: {exc}"
        with sink.lock:
            if self._run.closed:
                self._completed = True
                self._run.late_signal(self.rule_id, f"failed after the run terminated: {message}")
                return
            sink.report(EXCEPTION, RunException(message=message, rule=self.rule_id))
            if not self._completed:
                self._completed = True
                self._run.barrier.settle(self.rule_id)


class ValidationRun:
    """
    State of one validation run: lifecycle, the counted barrier over the
    dispatched rules and the terminal signal, which fires exactly once.
    """

    def __init__(self, sink: Sink, profile: Optional[str] = None, loop: Optional[asyncio.AbstractEventLoop] = None):
        self.run_id = uuid.uuid4().hex[:12]
        self.sink = sink
        sink.bind(self.run_id)
        self.profile = profile
        self.state = RunState.IDLE
        self.barrier = CompletionBarrier(loop or asyncio.get_running_loop())
        self.meta: Optional[DocumentModel] = None
        self.timed_out = False
        self.fatal = False
        self._result: Optional[RunResult] = None

    def transition(self, new_state: RunState) -> None:
        with self.sink.lock:
            if new_state not in _TRANSITIONS[self.state]:
                raise RuntimeError(f"Run {self.run_id}: illegal transition {self.state.value} -> {new_state.value}")
            logger.debug("Run %s: %s -> %s", self.run_id, self.state.value, new_state.value)
            self.state = new_state

    @property
    def closed(self) -> bool:
        """True once the run stopped accepting findings."""
        return self.state in (RunState.AGGREGATING, RunState.TERMINATED)

    def reporter_for(self, rule: Rule) -> RuleReporter:
        self.barrier.dispatch(rule.rule_id)
        return RuleReporter(self, rule)

    def late_signal(self, rule_id: Optional[str], message: str) -> None:
        logger.warning("Run %s: rule %s %s; discarded.", self.run_id, rule_id, message)
        self.sink.report(EXCEPTION, RunException(message=message, rule=rule_id, kind="late-signal"))

    def abort(self, message: str) -> RunResult:
        """Fatal failure before any rule ran: one exception, no end-all."""
        with self.sink.lock:
            self.fatal = True
            self.sink.report(EXCEPTION, RunException(message=message, kind="fatal"))
            self.transition(RunState.TERMINATED)
            self._result = self._snapshot(findings=[])
        return self._result

    def timeout(self, timeout: float) -> bool:
        """
        Records the rules that never settled before the timeout. Returns
        False, changing nothing, when the last of them settled meanwhile.
        """
        with self.sink.lock:
            unsettled = self.barrier.unsettled
            if not unsettled:
                return False
            self.timed_out = True
            self.transition(RunState.AGGREGATING)
            self.sink.report(EXCEPTION, RunException(
                message=f"Run timed out after {timeout}s; unsettled rules: {', '.join(unsettled)}",
                kind="timeout",
            ))
        logger.warning("Run %s timed out with %d unsettled rule(s): %s", self.run_id, len(unsettled), unsettled)
        return True

    def terminate(self) -> RunResult:
        """Aggregating -> Terminated. Emits the single end-all event."""
        with self.sink.lock:
            if self._result is not None:
                self.late_signal(None, "termination requested twice")
                return self._result
            if self.state is not RunState.AGGREGATING:
                self.transition(RunState.AGGREGATING)
            self._result = self._snapshot(findings=list(self.sink.findings))
            self.transition(RunState.TERMINATED)
            self.sink.report(END_ALL)
        return self._result

    def _snapshot(self, findings: List[Finding]) -> RunResult:
        return RunResult(
            profile=self.profile,
            meta=self.meta,
            findings=findings,
            exceptions=list(self.sink.exceptions),
            dispatched=self.barrier.dispatched,
            unsettled=self.barrier.unsettled,
            timed_out=self.timed_out,
            fatal=self.fatal,
        )

    @property
    def result(self) -> Optional[RunResult]:
        return self._result
