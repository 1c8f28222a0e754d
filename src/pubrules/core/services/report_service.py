# src/pubrules/core/services/report_service.py
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

import pandas as pd

from pubrules.model import RunResult

logger = logging.getLogger(__name__)

FINDING_COLUMNS = ["severity", "category", "rule", "key", "identity", "detail"]


class ReportService:
    """
    Turns a RunResult into tables and documents for people and tools.

    Findings keep the order they were reported in and duplicates are kept:
    two identical errors mean the problem occurs twice.
    """

    def __init__(self, result: RunResult):
        self.result = result

    def findings_frame(self) -> pd.DataFrame:
        rows = [
            {
                "severity": f.severity.value,
                "category": f.category,
                "rule": f.rule,
                "key": f.key,
                "identity": f.identity,
                "detail": json.dumps(f.detail, default=str, sort_keys=True) if f.detail else "",
            }
            for f in self.result.findings
        ]
        return pd.DataFrame(rows, columns=FINDING_COLUMNS)

    def summary_frame(self) -> pd.DataFrame:
        """Number of errors and warnings per rule."""
        df = self.findings_frame()
        if df.empty:
            return pd.DataFrame(columns=["category", "rule", "error", "warning"])
        summary = (
            df.groupby(["category", "rule", "severity"]).size()
            .unstack("severity", fill_value=0)
            .reindex(columns=["error", "warning"], fill_value=0)
            .reset_index()
        )
        summary.columns.name = None
        return summary

    def to_dict(self) -> Dict[str, Any]:
        result = self.result
        return {
            "profile": result.profile,
            "complete": result.complete,
            "timed_out": result.timed_out,
            "metadata": result.meta.metadata() if result.meta is not None else None,
            "errors": [f.model_dump(mode="json") for f in result.errors],
            "warnings": [f.model_dump(mode="json") for f in result.warnings],
            "exceptions": [e.model_dump(mode="json") for e in result.exceptions],
            "unsettled": list(result.unsettled),
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, default=str)

    def export_csv(self, path: Union[str, Path]) -> Path:
        """Writes the findings to a CSV file, creating the parent directory if needed."""
        output = Path(path).expanduser()
        output.parent.mkdir(parents=True, exist_ok=True)
        self.findings_frame().to_csv(output, index=False)
        logger.info("Exported %d finding(s) to %s", len(self.result.findings), output)
        return output

    def render_text(self) -> str:
        result = self.result
        lines: List[str] = []
        if result.meta is not None:
            lines.append(f"Document: {result.meta.title or '(untitled)'} [{result.meta.profile or 'unknown status'}]")
        if result.profile:
            lines.append(f"Profile:  {result.profile}")

        df = self.findings_frame()
        if df.empty:
            lines.append("No errors or warnings.")
        else:
            table = df[["severity", "identity", "detail"]].to_string(index=False, max_colwidth=80)
            lines.append(table)
            lines.append(f"{len(result.errors)} error(s), {len(result.warnings)} warning(s)")

        for exc in result.exceptions:
            where = f" in {exc.rule}" if exc.rule else ""
            lines.append(f"[{exc.kind}]{where}: {exc.message}")
        if result.timed_out:
            lines.append(f"Run timed out; not settled: {', '.join(result.unsettled)}")
        return "\n".join(lines)
