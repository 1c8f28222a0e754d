# src/pubrules/core/managers/progress_manager.py
import logging
import sys
from typing import Optional

from tqdm import tqdm

from pubrules.core.sink import DONE, END_ALL, ERROR, EXCEPTION, WARNING, Sink

logger = logging.getLogger(__name__)


class ProgressManager:
    """
    tqdm progress bar over the rules of one run, fed by the run's sink.
    Counts settled rules and shows running error/warning totals.
    """

    def __init__(self, total: int, desc: str = "Validating", unit: str = "rule", disable: Optional[bool] = None):
        self.errors = 0
        self.warnings = 0
        self.pbar = tqdm(
            total=max(total, 1),
            desc=desc,
            unit=f" {unit}",
            dynamic_ncols=True,
            mininterval=0.2,
            postfix={"errors": 0, "warnings": 0},
            bar_format="{l_bar}{bar}| {n_fmt}/{total_fmt} [{elapsed}] {postfix}",
            file=sys.stderr,
            disable=disable,
        )

    def attach(self, sink: Sink) -> "ProgressManager":
        sink.subscribe(ERROR, self._on_error)
        sink.subscribe(WARNING, self._on_warning)
        sink.subscribe(DONE, self._on_settled)
        sink.subscribe(EXCEPTION, self._on_exception)
        sink.subscribe(END_ALL, lambda _: self.close())
        return self

    def _on_error(self, _finding) -> None:
        self.errors += 1
        self._refresh_postfix()

    def _on_warning(self, _finding) -> None:
        self.warnings += 1
        self._refresh_postfix()

    def _on_settled(self, _rule_id) -> None:
        self.pbar.update(1)

    def _on_exception(self, exc) -> None:
        # Rule faults settle the rule as well
        if getattr(exc, "kind", None) == "fault" and exc.rule:
            self.pbar.update(1)

    def _refresh_postfix(self) -> None:
        self.pbar.set_postfix({"errors": self.errors, "warnings": self.warnings}, refresh=False)

    def close(self) -> None:
        try:
            self._refresh_postfix()
            self.pbar.close()
            logger.debug("ProgressManager: Progress bar closed.")
        except Exception as e:
            logger.error("Error encountered while closing progress bar: %s", e)
