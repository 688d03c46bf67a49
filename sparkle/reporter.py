"""Run summaries and report files for sparkle runs."""
from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Mapping

from .models import CrawlFailure, FileContext
from .rules import Rule


@dataclass(slots=True)
class RuleOutcome:
    """Result of crawling one location for one rule."""

    rule: Rule
    location: Path
    contexts: list[FileContext] = field(default_factory=list)
    failures: list[CrawlFailure] = field(default_factory=list)


@dataclass(slots=True)
class RunSummary:
    started_at: datetime
    finished_at: datetime
    dry_run: bool
    outcomes: list[RuleOutcome] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        return max((self.finished_at - self.started_at).total_seconds(), 0.0)

    @property
    def matched_files(self) -> int:
        return sum(len(outcome.contexts) for outcome in self.outcomes)

    @property
    def failed_files(self) -> int:
        return sum(len(outcome.failures) for outcome in self.outcomes)

    def to_dict(self) -> dict[str, object]:
        file_types: Counter[str] = Counter(
            context.metadata.file_type.value
            for outcome in self.outcomes
            for context in outcome.contexts
        )
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "duration_seconds": self.duration_seconds,
            "dry_run": self.dry_run,
            "file_types": dict(sorted(file_types.items())),
            "totals": {
                "rules": len({outcome.rule.name for outcome in self.outcomes}),
                "matched": self.matched_files,
                "failed": self.failed_files,
            },
            "rules": [
                {
                    "name": outcome.rule.name,
                    "location": str(outcome.location),
                    "matched": [str(context.path) for context in outcome.contexts],
                    "failures": [failure.to_dict() for failure in outcome.failures],
                }
                for outcome in self.outcomes
            ],
        }


def render_text(payload: Mapping[str, object]) -> str:
    totals = payload.get("totals", {})
    lines: list[str] = [
        "sparkle Run Report",
        "==================",
        f"Start: {payload['started_at']}",
        f"End: {payload['finished_at']}",
        f"Duration: {payload['duration_seconds']:.2f}s",
        f"Dry run: {'yes' if payload.get('dry_run') else 'no'}",
        "",
        "Totals:",
        f"  rules: {totals.get('rules', 0)}",
        f"  matched: {totals.get('matched', 0)}",
        f"  failed: {totals.get('failed', 0)}",
    ]

    file_types = payload.get("file_types", {})
    if file_types:
        lines.extend(["", "File types:"])
        for key, value in file_types.items():
            lines.append(f"  - {key}: {value}")

    failures = [
        failure
        for entry in payload.get("rules", [])
        for failure in entry.get("failures", [])
    ]
    if failures:
        lines.extend(["", "Failures:"])
        for failure in failures:
            lines.append(f"  - {failure['path']} [{failure['stage']}]: {failure['message']}")

    return "\n".join(lines)


def write_report(summary: RunSummary, destination: str | Path) -> tuple[Path, Path]:
    """Write ``report.json`` and ``report.txt`` into *destination*."""

    destination_path = Path(destination)
    destination_path.mkdir(parents=True, exist_ok=True)
    payload = summary.to_dict()

    json_path = destination_path / "report.json"
    txt_path = destination_path / "report.txt"
    json_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    txt_path.write_text(render_text(payload), encoding="utf-8")
    return json_path, txt_path


__all__ = ["RuleOutcome", "RunSummary", "render_text", "write_report"]
