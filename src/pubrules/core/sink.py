# src/pubrules/core/sink.py
import logging
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional

from pubrules.core.errors import SinkReuseError
from pubrules.model import Finding, RunException

logger = logging.getLogger(__name__)

ERROR = "error"
WARNING = "warning"
DONE = "done"
EXCEPTION = "exception"
END_ALL = "end-all"

EVENT_KINDS = (ERROR, WARNING, DONE, EXCEPTION, END_ALL)

Observer = Callable[[Any], None]


class Sink:
    """
    Message bus for one validation run.

    Rules report findings, completions and exceptions; callers subscribe to
    them. A single re-entrant lock serialises report() so observers see
    events in the order they were reported, whichever thread reported them.
    A sink is bound to exactly one run.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._observers: Dict[str, List[Observer]] = defaultdict(list)
        self._run_id: Optional[str] = None

        self.findings: List[Finding] = []
        self.exceptions: List[RunException] = []
        self.done_count = 0
        self.ended = False

    # --- Lifecycle ---

    def bind(self, run_id: str) -> None:
        """Attaches the sink to a run. A second run may not reuse it."""
        with self._lock:
            if self._run_id is not None:
                raise SinkReuseError(
                    f"Sink already used by run {self._run_id}; create a new Sink for run {run_id}"
                )
            self._run_id = run_id

    @property
    def run_id(self) -> Optional[str]:
        return self._run_id

    @property
    def lock(self) -> threading.RLock:
        """The lock serialising report(); held by the run while it changes state."""
        return self._lock

    # --- Pub/Sub ---

    def subscribe(self, kind: str, observer: Observer) -> None:
        if kind not in EVENT_KINDS:
            raise ValueError(f"Unknown event kind '{kind}', expected one of {EVENT_KINDS}")
        with self._lock:
            self._observers[kind].append(observer)

    def on(self, kind: str) -> Callable[[Observer], Observer]:
        """Decorator form of subscribe()."""
        def decorator(func: Observer) -> Observer:
            self.subscribe(kind, func)
            return func
        return decorator

    def report(self, kind: str, payload: Any = None) -> None:
        if kind not in EVENT_KINDS:
            raise ValueError(f"Unknown event kind '{kind}', expected one of {EVENT_KINDS}")

        with self._lock:
            if kind in (ERROR, WARNING):
                self.findings.append(payload)
            elif kind == EXCEPTION:
                self.exceptions.append(payload)
            elif kind == DONE:
                self.done_count += 1
            elif kind == END_ALL:
                self.ended = True

            for observer in list(self._observers[kind]):
                try:
                    observer(payload)
                except Exception as e:
                    logger.error("Observer %r failed on '%s' event: %s", observer, kind, e, exc_info=True)

    # --- Accumulated state ---

    @property
    def errors(self) -> List[Finding]:
        with self._lock:
            return [f for f in self.findings if f.severity.value == ERROR]

    @property
    def warnings(self) -> List[Finding]:
        with self._lock:
            return [f for f in self.findings if f.severity.value == WARNING]

    def identities(self, kind: Optional[str] = None) -> List[str]:
        """'category.rule.key' of every accumulated finding, duplicates kept."""
        with self._lock:
            return [f.identity for f in self.findings if kind is None or f.severity.value == kind]
