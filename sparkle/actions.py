"""Execution of rule actions against matched files."""
from __future__ import annotations

import errno
import logging
import os
import re
import shutil
import time
from pathlib import Path
from typing import Callable, Sequence

from .logger import log_event
from .rules import (
    Action,
    CompressAction,
    CopyAction,
    DeleteAction,
    EchoAction,
    MoveAction,
    RenameAction,
    SetPermissionsAction,
)
from .utils.fs import sha256_digest, timestamped_name, unique_path

LOGGER_NAME = "sparkle.actions"


class ActionError(Exception):
    """An action could not be applied to a file."""

    def __init__(self, action: str, path: Path, message: str) -> None:
        super().__init__(f"{action} failed for {path}: {message}")
        self.action = action
        self.path = path
        self.message = message


class DestinationMissingError(ActionError):
    pass


class SourceIsDirectoryError(ActionError):
    pass


class DestinationExistsError(ActionError):
    pass


class ActionIOError(ActionError):
    def __init__(self, action: str, path: Path, cause: OSError) -> None:
        super().__init__(action, path, str(cause))
        self.cause = cause


class UnsupportedActionError(ActionError):
    pass


def _epoch_millis() -> int:
    return time.time_ns() // 1_000_000


class ActionExecutor:
    """Apply an ordered list of actions to a single file.

    The first failing action raises an :class:`ActionError` and the
    remaining actions are not attempted. With ``dry_run`` every check still
    runs but nothing on disk changes.
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        *,
        dry_run: bool = False,
        clock: Callable[[], int] = _epoch_millis,
    ) -> None:
        self.logger = logger or logging.getLogger(LOGGER_NAME)
        self.dry_run = dry_run
        self.clock = clock

    def apply(self, actions: Sequence[Action], path: Path, *, rule: str | None = None) -> Path:
        """Run *actions* in order and return where the file ended up."""

        current = Path(path)
        for action in actions:
            current = self.run(action, current, rule=rule)
        return current

    def run(self, action: Action, path: Path, *, rule: str | None = None) -> Path:
        if isinstance(action, EchoAction):
            return self._echo(action, path, rule)
        if isinstance(action, MoveAction):
            return self._move(action, path, rule)
        if isinstance(action, CopyAction):
            return self._copy(action, path, rule)
        if isinstance(action, DeleteAction):
            return self._delete(action, path, rule)
        if isinstance(action, RenameAction):
            return self._rename(action, path, rule)
        if isinstance(action, SetPermissionsAction):
            return self._set_permissions(action, path, rule)
        if isinstance(action, CompressAction):
            raise UnsupportedActionError(
                action.kind, path, f"compression to {action.format!r} is not implemented"
            )
        raise TypeError(f"Unsupported action: {action!r}")

    # ------------------------------------------------------------------
    # Individual actions
    def _echo(self, action: EchoAction, path: Path, rule: str | None) -> Path:
        log_event(
            self.logger,
            level=logging.INFO,
            action="action.echo",
            message=action.message,
            rule=rule,
            extra={"path": str(path)},
        )
        return path

    def _move(self, action: MoveAction, path: Path, rule: str | None) -> Path:
        if action.destination.is_dir() and path.parent.resolve() == action.destination.resolve():
            log_event(
                self.logger,
                level=logging.DEBUG,
                action="action.move.unchanged",
                message=f"{path} is already in {action.destination}",
                rule=rule,
                extra={"path": str(path)},
            )
            return path
        target = self._check_transfer(action.kind, path, action.destination)
        if self.dry_run:
            self._log_dry_run(action.kind, path, target, rule)
            return target

        try:
            os.rename(path, target)
        except OSError as exc:
            if exc.errno != errno.EXDEV:
                raise ActionIOError(action.kind, path, exc) from exc
            self._copy_verify_and_delete(path, target)
        self._log_applied(action.kind, f"Moved {path} -> {target}", path, target, rule)
        return target

    def _copy(self, action: CopyAction, path: Path, rule: str | None) -> Path:
        target = self._check_transfer(action.kind, path, action.destination)
        if self.dry_run:
            self._log_dry_run(action.kind, path, target, rule)
            return path

        try:
            shutil.copy2(path, target)
        except OSError as exc:
            raise ActionIOError(action.kind, path, exc) from exc
        self._log_applied(action.kind, f"Copied {path} -> {target}", path, target, rule)
        return path

    def _delete(self, action: DeleteAction, path: Path, rule: str | None) -> Path:
        if self.dry_run:
            self._log_dry_run(action.kind, path, None, rule)
            return path

        try:
            path.unlink()
        except OSError as exc:
            raise ActionIOError(action.kind, path, exc) from exc
        self._log_applied(action.kind, f"Deleted {path}", path, None, rule)
        return path

    def _rename(self, action: RenameAction, path: Path, rule: str | None) -> Path:
        if action.pattern:
            try:
                new_name = re.sub(action.pattern, action.replacement, path.name)
            except re.error as exc:
                raise ActionError(action.kind, path, f"invalid pattern {action.pattern!r}: {exc}") from exc
        else:
            new_name = action.replacement
        if new_name in ("", ".", "..") or Path(new_name).name != new_name:
            raise ActionError(action.kind, path, f"invalid file name {new_name!r}")

        target = path.with_name(new_name)
        if target == path:
            log_event(
                self.logger,
                level=logging.DEBUG,
                action="action.rename.unchanged",
                message=f"Name of {path} is already {new_name}",
                rule=rule,
                extra={"path": str(path)},
            )
            return path
        if target.exists():
            stamped = path.with_name(timestamped_name(new_name, path.suffix, self.clock()))
            target = unique_path(stamped)

        if self.dry_run:
            self._log_dry_run(action.kind, path, target, rule)
            return target

        try:
            os.rename(path, target)
        except OSError as exc:
            raise ActionIOError(action.kind, path, exc) from exc
        self._log_applied(action.kind, f"Renamed {path} -> {target}", path, target, rule)
        return target

    def _set_permissions(self, action: SetPermissionsAction, path: Path, rule: str | None) -> Path:
        if self.dry_run:
            self._log_dry_run(action.kind, path, None, rule, mode=oct(action.mode))
            return path

        try:
            os.chmod(path, action.mode)
        except OSError as exc:
            raise ActionIOError(action.kind, path, exc) from exc
        self._log_applied(action.kind, f"Set mode {oct(action.mode)} on {path}", path, None, rule)
        return path

    # ------------------------------------------------------------------
    # Helpers
    def _check_transfer(self, kind: str, path: Path, destination: Path) -> Path:
        """Validate a move/copy and return the target path; touches nothing."""

        if not destination.is_dir():
            raise DestinationMissingError(kind, path, f"destination directory {destination} does not exist")
        if path.is_dir():
            raise SourceIsDirectoryError(kind, path, "directories cannot be moved or copied")
        target = destination / path.name
        if target.exists():
            raise DestinationExistsError(kind, path, f"{target} already exists")
        return target

    def _copy_verify_and_delete(self, source: Path, target: Path) -> None:
        """Move across filesystems: copy, compare digests, then drop the source."""

        try:
            shutil.copy2(source, target)
            if sha256_digest(source) != sha256_digest(target):
                target.unlink()
                raise ActionError("move", source, "SHA-256 verification failed after copy")
            source.unlink()
        except OSError as exc:
            if target.exists() and source.exists():
                target.unlink()
            raise ActionIOError("move", source, exc) from exc

    def _log_applied(self, kind: str, message: str, source: Path, target: Path | None, rule: str | None) -> None:
        extra: dict[str, object] = {"path": str(source)}
        if target is not None:
            extra["target"] = str(target)
        log_event(self.logger, level=logging.INFO, action=f"action.{kind}", message=message, rule=rule, extra=extra)

    def _log_dry_run(
        self,
        kind: str,
        source: Path,
        target: Path | None,
        rule: str | None,
        **details: object,
    ) -> None:
        extra: dict[str, object] = {"path": str(source), "dry_run": True, **details}
        if target is not None:
            extra["target"] = str(target)
        log_event(
            self.logger,
            level=logging.INFO,
            action=f"action.{kind}",
            message=f"Would {kind.replace('_', ' ')} {source}" + (f" -> {target}" if target else ""),
            rule=rule,
            extra=extra,
        )


__all__ = [
    "ActionError",
    "ActionExecutor",
    "ActionIOError",
    "DestinationExistsError",
    "DestinationMissingError",
    "SourceIsDirectoryError",
    "UnsupportedActionError",
]
