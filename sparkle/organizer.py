"""Main sparkle orchestration."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable

from .actions import ActionExecutor
from .classifier import FileClassifier
from .crawler import DirectoryCrawler
from .logger import LOGGER_NAME, log_event
from .reporter import RuleOutcome, RunSummary
from .rules import Rule


class Organizer:
    """Run every rule over every one of its locations."""

    def __init__(
        self,
        *,
        base_dir: str | Path,
        dry_run: bool = False,
        quiet: bool = False,
        logger: logging.Logger | None = None,
    ) -> None:
        self.base_dir = Path(base_dir)
        self.dry_run = dry_run
        self.quiet = quiet
        self.logger = logger or logging.getLogger(LOGGER_NAME)
        self.classifier = FileClassifier(logger=self.logger.getChild("classifier"))
        self.executor = ActionExecutor(self.logger.getChild("actions"), dry_run=dry_run)

    def run(self, rules: Iterable[Rule]) -> RunSummary:
        summary = RunSummary(started_at=datetime.now(), finished_at=datetime.now(), dry_run=self.dry_run)

        for rule in rules:
            for location in rule.locations:
                crawler = DirectoryCrawler(
                    rule,
                    base_dir=self.base_dir,
                    executor=self.executor,
                    classifier=self.classifier,
                    quiet=self.quiet,
                    logger=self.logger.getChild("crawler"),
                )
                contexts = crawler.crawl(location)
                summary.outcomes.append(
                    RuleOutcome(rule=rule, location=location, contexts=contexts, failures=crawler.failures)
                )
                log_event(
                    self.logger,
                    level=logging.INFO,
                    action="rule.done",
                    message=f"Rule {rule.name!r} matched {len(contexts)} file(s) in {location}",
                    rule=rule.name,
                    extra={
                        "location": str(location),
                        "matched": len(contexts),
                        "failed": len(crawler.failures),
                    },
                )

        summary.finished_at = datetime.now()
        log_event(
            self.logger,
            level=logging.INFO,
            action="run.done",
            message=f"Files matched: {summary.matched_files}",
            duration_ms=summary.duration_seconds * 1000.0,
            extra={"matched": summary.matched_files, "failed": summary.failed_files, "dry_run": self.dry_run},
        )
        return summary


__all__ = ["Organizer"]
