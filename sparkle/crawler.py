"""Recursive directory crawler that applies one rule per traversal."""
from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Callable

from .actions import ActionError, ActionExecutor
from .classifier import FileClassifier
from .file_metadata import FileMetadataError, build_metadata
from .filters import matches
from .logger import log_event
from .models import CrawlFailure, FileContext
from .rules import CopyAction, MoveAction, Rule

LOGGER_NAME = "sparkle.crawler"


class DirectoryCrawler:
    """Walks a directory tree depth-first and runs *rule* on every file.

    Every per-entry problem (unreadable directory, failed stat, failed
    metadata read, failed action) is logged, recorded in :attr:`failures`
    and skipped. :meth:`crawl` never raises for filesystem conditions.
    Subdirectories that are a move or copy destination of *rule* are not
    descended into, so files the rule just wrote are not processed twice.
    Dangling symlinks are recorded as metadata failures.
    """

    def __init__(
        self,
        rule: Rule,
        *,
        base_dir: str | Path,
        executor: ActionExecutor | None = None,
        classifier: FileClassifier | None = None,
        quiet: bool = False,
        logger: logging.Logger | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.rule = rule
        self.base_dir = Path(base_dir)
        self.logger = logger or logging.getLogger(LOGGER_NAME)
        self.executor = executor or ActionExecutor(self.logger.getChild("actions"))
        self.classifier = classifier
        self.quiet = quiet
        self.clock = clock
        self.failures: list[CrawlFailure] = []
        self._visited: set[tuple[int, int]] = set()
        self._destinations: set[tuple[int, int]] = set()

    def crawl(self, root: str | Path) -> list[FileContext]:
        """Return a :class:`FileContext` for every file that matched and was processed."""

        root_path = Path(root).expanduser()
        results: list[FileContext] = []
        if not root_path.is_dir():
            log_event(
                self.logger,
                level=logging.DEBUG,
                action="crawl.skip",
                message=f"Not a directory: {root_path}",
                rule=self.rule.name,
                extra={"path": str(root_path)},
            )
            return results

        self._visited.clear()
        self._destinations = self._transfer_destinations()
        self._search_dir(root_path, results)
        return results

    def _search_dir(self, directory: Path, results: list[FileContext]) -> None:
        if not self._first_visit(directory):
            return

        try:
            with os.scandir(directory) as iterator:
                entries = sorted(iterator, key=lambda entry: entry.name)
        except OSError as exc:
            self._warn("crawl.unreadable_dir", directory, "list", f"Could not read directory {directory}: {exc}")
            return

        for entry in entries:
            entry_path = Path(entry.path)
            try:
                is_dir = entry.is_dir()
                is_file = not is_dir and entry.is_file()
                is_dangling = not (is_dir or is_file) and entry.is_symlink() and not os.path.exists(entry.path)
            except OSError as exc:
                self._warn("crawl.unreadable_entry", entry_path, "stat", f"Error accessing entry {entry_path}: {exc}")
                continue

            if is_dir:
                if self.rule.include_subfolders and not self._is_destination(entry_path):
                    self._search_dir(entry_path, results)
            elif is_file or is_dangling:
                context = self._process_file(entry_path)
                if context is not None:
                    results.append(context)
            else:
                log_event(
                    self.logger,
                    level=logging.DEBUG,
                    action="crawl.skip",
                    message=f"Skipping non-regular entry {entry_path}",
                    rule=self.rule.name,
                    extra={"path": str(entry_path)},
                )

    def _transfer_destinations(self) -> set[tuple[int, int]]:
        """Identities of the move/copy destinations, so their output is not crawled again."""

        identities: set[tuple[int, int]] = set()
        for action in self.rule.actions:
            if isinstance(action, (MoveAction, CopyAction)):
                try:
                    stat_result = action.destination.stat()
                except OSError:
                    continue
                identities.add((stat_result.st_dev, stat_result.st_ino))
        return identities

    def _is_destination(self, directory: Path) -> bool:
        try:
            stat_result = directory.stat()
        except OSError:
            return False
        if (stat_result.st_dev, stat_result.st_ino) not in self._destinations:
            return False
        log_event(
            self.logger,
            level=logging.DEBUG,
            action="crawl.skip",
            message=f"Skipping action destination {directory}",
            rule=self.rule.name,
            extra={"path": str(directory)},
        )
        return True

    def _first_visit(self, directory: Path) -> bool:
        try:
            stat_result = directory.stat()
        except OSError as exc:
            self._warn("crawl.unreadable_dir", directory, "stat", f"Could not stat directory {directory}: {exc}")
            return False
        identity = (stat_result.st_dev, stat_result.st_ino)
        if identity in self._visited:
            log_event(
                self.logger,
                level=logging.DEBUG,
                action="crawl.cycle",
                message=f"Already visited {directory}",
                rule=self.rule.name,
                extra={"path": str(directory)},
            )
            return False
        self._visited.add(identity)
        return True

    def _process_file(self, path: Path) -> FileContext | None:
        now = self.clock()
        try:
            metadata = build_metadata(path, now=now, classifier=self.classifier)
        except FileMetadataError as exc:
            self._record(path, "metadata", str(exc))
            log_event(
                self.logger,
                level=logging.ERROR,
                action="crawl.metadata_error",
                message=f"Could not read metadata for {path}: {exc}",
                rule=self.rule.name,
                extra={"path": str(path)},
            )
            return None

        if not matches(path, metadata, self.rule.filters, now=now):
            return None

        log_event(
            self.logger,
            level=logging.DEBUG,
            action="crawl.match",
            message=f"Matched {path}",
            rule=self.rule.name,
            extra={"path": str(path), "file_type": metadata.file_type.value},
        )

        try:
            final_path = self.executor.apply(self.rule.actions, path, rule=self.rule.name)
        except ActionError as exc:
            self._record(path, f"action.{exc.action}", exc.message)
            log_event(
                self.logger,
                level=logging.ERROR,
                action=f"action.{exc.action}.failed",
                message=str(exc),
                rule=self.rule.name,
                extra={"path": str(path), "error": type(exc).__name__},
            )
            return None

        return FileContext(
            path=final_path,
            metadata=metadata,
            parent_dir=final_path.parent,
            base_dir=self.base_dir,
        )

    def _warn(self, action: str, path: Path, stage: str, message: str) -> None:
        self._record(path, stage, message)
        if self.quiet:
            return
        log_event(
            self.logger,
            level=logging.WARNING,
            action=action,
            message=message,
            rule=self.rule.name,
            extra={"path": str(path)},
        )

    def _record(self, path: Path, stage: str, message: str) -> None:
        self.failures.append(CrawlFailure(path=path, stage=stage, message=message))


def crawl(
    root: str | Path,
    rule: Rule,
    *,
    base_dir: str | Path | None = None,
    quiet: bool = False,
    dry_run: bool = False,
    logger: logging.Logger | None = None,
) -> list[FileContext]:
    """Crawl *root* once for *rule*. ``base_dir`` defaults to *root*."""

    logger = logger or logging.getLogger(LOGGER_NAME)
    crawler = DirectoryCrawler(
        rule,
        base_dir=base_dir if base_dir is not None else root,
        executor=ActionExecutor(logger.getChild("actions"), dry_run=dry_run),
        quiet=quiet,
        logger=logger,
    )
    return crawler.crawl(root)


__all__ = ["DirectoryCrawler", "crawl"]
