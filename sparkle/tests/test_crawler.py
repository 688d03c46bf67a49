from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from pathlib import Path

import pytest

from sparkle import crawler as crawler_module
from sparkle.crawler import DirectoryCrawler, crawl
from sparkle.file_metadata import MetadataIOError
from sparkle.models import FileType
from sparkle.rules import (
    CopyAction,
    DeleteAction,
    EchoAction,
    ExtensionFilter,
    MoveAction,
    NameContainsFilter,
    Rule,
)


def make_rule(filters, actions=(), *, include_subfolders: bool = True) -> Rule:
    return Rule(
        name="test",
        locations=(),
        filters=tuple(filters),
        actions=tuple(actions),
        include_subfolders=include_subfolders,
    )


@pytest.fixture()
def tree(tmp_path: Path) -> Path:
    root = tmp_path / "root"
    root.mkdir()
    (root / "a.txt").write_text("alpha", encoding="utf-8")
    (root / "b.rs").write_text("fn main() {}", encoding="utf-8")
    (root / "c.unknownext").write_text("???", encoding="utf-8")
    nested = root / "nested"
    nested.mkdir()
    (nested / "d.txt").write_text("delta", encoding="utf-8")
    return root


def test_echo_rule_returns_single_match(tmp_path: Path) -> None:
    root = tmp_path / "flat"
    root.mkdir()
    (root / "a.txt").write_text("a", encoding="utf-8")
    (root / "b.rs").write_text("b", encoding="utf-8")
    (root / "c.unknownext").write_text("c", encoding="utf-8")

    results = crawl(root, make_rule([ExtensionFilter("txt")], [EchoAction("found")]))

    assert len(results) == 1
    context = results[0]
    assert context.path.name == "a.txt"
    assert context.parent_dir == root
    assert context.base_dir == root
    assert context.content_info is None
    assert context.metadata.file_type is FileType.TEXT


def test_missing_root_returns_empty(tmp_path: Path) -> None:
    assert crawl(tmp_path / "does-not-exist", make_rule([ExtensionFilter("txt")])) == []


def test_file_root_returns_empty(tree: Path) -> None:
    assert crawl(tree / "a.txt", make_rule([ExtensionFilter("txt")])) == []


def test_recurses_into_subfolders(tree: Path) -> None:
    results = crawl(tree, make_rule([ExtensionFilter("txt")]))
    assert sorted(context.path.name for context in results) == ["a.txt", "d.txt"]


def test_subfolders_can_be_disabled(tree: Path) -> None:
    results = crawl(tree, make_rule([ExtensionFilter("txt")], include_subfolders=False))
    assert [context.path.name for context in results] == ["a.txt"]


def test_rule_without_filters_matches_nothing(tree: Path) -> None:
    results = crawl(tree, make_rule([], [DeleteAction()]))
    assert results == []
    assert (tree / "a.txt").exists()


def test_unreadable_directory_does_not_stop_siblings(tree: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    locked = tree / "locked"
    locked.mkdir()
    (locked / "hidden.txt").write_text("x", encoding="utf-8")
    real_scandir = os.scandir

    def fake_scandir(path):
        if Path(path) == locked:
            raise PermissionError(13, "Permission denied", str(path))
        return real_scandir(path)

    monkeypatch.setattr(os, "scandir", fake_scandir)
    rule_crawler = DirectoryCrawler(make_rule([ExtensionFilter("txt")]), base_dir=tree, quiet=True)

    results = rule_crawler.crawl(tree)

    assert sorted(context.path.name for context in results) == ["a.txt", "d.txt"]
    assert [(failure.path, failure.stage) for failure in rule_crawler.failures] == [(locked, "list")]


def test_metadata_failure_skips_only_that_file(tree: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    real_build = crawler_module.build_metadata

    def flaky_build(path, **kwargs):
        if Path(path).name == "a.txt":
            raise MetadataIOError(PermissionError(13, "Permission denied"))
        return real_build(path, **kwargs)

    monkeypatch.setattr(crawler_module, "build_metadata", flaky_build)
    rule_crawler = DirectoryCrawler(make_rule([ExtensionFilter("txt")]), base_dir=tree)

    results = rule_crawler.crawl(tree)

    assert [context.path.name for context in results] == ["d.txt"]
    assert len(rule_crawler.failures) == 1
    assert rule_crawler.failures[0].stage == "metadata"


def test_failed_actions_drop_file_but_continue(tree: Path, tmp_path: Path) -> None:
    rule_crawler = DirectoryCrawler(
        make_rule([ExtensionFilter("txt")], [MoveAction(tmp_path / "missing"), DeleteAction()]),
        base_dir=tree,
    )

    results = rule_crawler.crawl(tree)

    assert results == []
    assert {failure.path.name for failure in rule_crawler.failures} == {"a.txt", "d.txt"}
    assert all(failure.stage == "action.move" for failure in rule_crawler.failures)
    assert (tree / "a.txt").exists()
    assert (tree / "nested" / "d.txt").exists()


def test_context_reports_path_after_move(tree: Path, tmp_path: Path) -> None:
    archive = tmp_path / "archive"
    archive.mkdir()
    base_dir = tmp_path / "base"

    results = crawl(
        tree,
        make_rule([NameContainsFilter("b.")], [MoveAction(archive), EchoAction("moved")]),
        base_dir=base_dir,
    )

    assert len(results) == 1
    assert results[0].path == archive / "b.rs"
    assert results[0].parent_dir == archive
    assert results[0].base_dir == base_dir
    assert results[0].metadata.file_type is FileType.CODE
    assert not (tree / "b.rs").exists()


def test_dry_run_crawl_keeps_files(tree: Path) -> None:
    results = crawl(tree, make_rule([ExtensionFilter("txt")], [DeleteAction()]), dry_run=True)
    assert len(results) == 2
    assert (tree / "a.txt").exists()
    assert (tree / "nested" / "d.txt").exists()


def test_symlink_cycles_terminate(tree: Path) -> None:
    (tree / "nested" / "loop").symlink_to(tree, target_is_directory=True)
    results = crawl(tree, make_rule([ExtensionFilter("txt")]))
    assert sorted(context.path.name for context in results) == ["a.txt", "d.txt"]


def test_symlinked_directory_outside_root_is_followed(tree: Path, tmp_path: Path) -> None:
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "e.txt").write_text("e", encoding="utf-8")
    (tree / "linked").symlink_to(outside, target_is_directory=True)

    results = crawl(tree, make_rule([ExtensionFilter("txt")]))

    assert sorted(context.path.name for context in results) == ["a.txt", "d.txt", "e.txt"]


def test_moved_files_are_not_crawled_again(tmp_path: Path) -> None:
    root = tmp_path / "downloads"
    archive = root / "zarchive"
    archive.mkdir(parents=True)
    (root / "a.txt").write_text("a", encoding="utf-8")
    rule_crawler = DirectoryCrawler(make_rule([ExtensionFilter("txt")], [MoveAction(archive)]), base_dir=root)

    results = rule_crawler.crawl(root)

    assert [context.path for context in results] == [archive / "a.txt"]
    assert rule_crawler.failures == []


def test_copied_files_are_not_copied_again(tmp_path: Path) -> None:
    root = tmp_path / "downloads"
    backup = root / "zbackup"
    backup.mkdir(parents=True)
    (root / "a.txt").write_text("a", encoding="utf-8")
    rule_crawler = DirectoryCrawler(make_rule([ExtensionFilter("txt")], [CopyAction(backup)]), base_dir=root)

    results = rule_crawler.crawl(root)

    assert [context.path for context in results] == [root / "a.txt"]
    assert rule_crawler.failures == []
    assert (backup / "a.txt").read_text(encoding="utf-8") == "a"


class _UnreadableEntry:
    def __init__(self, entry: os.DirEntry) -> None:
        self.name = entry.name
        self.path = entry.path

    def is_dir(self) -> bool:
        raise PermissionError(13, "Permission denied", self.path)

    def is_file(self) -> bool:
        raise PermissionError(13, "Permission denied", self.path)


def test_entry_stat_failure_is_recorded(tree: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    real_scandir = os.scandir

    @contextmanager
    def fake_scandir(path):
        with real_scandir(path) as iterator:
            yield [_UnreadableEntry(entry) if entry.name == "a.txt" else entry for entry in iterator]

    monkeypatch.setattr(os, "scandir", fake_scandir)
    rule_crawler = DirectoryCrawler(make_rule([ExtensionFilter("txt")]), base_dir=tree, quiet=True)

    results = rule_crawler.crawl(tree)

    assert [context.path.name for context in results] == ["d.txt"]
    assert [(failure.path, failure.stage) for failure in rule_crawler.failures] == [(tree / "a.txt", "stat")]


@pytest.mark.parametrize("quiet, expected_warnings", [(True, 0), (False, 1)])
def test_quiet_suppresses_listing_warnings(
    tree: Path,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
    quiet: bool,
    expected_warnings: int,
) -> None:
    real_scandir = os.scandir

    def fake_scandir(path):
        if Path(path) == tree / "nested":
            raise PermissionError(13, "Permission denied", str(path))
        return real_scandir(path)

    monkeypatch.setattr(os, "scandir", fake_scandir)
    logger = logging.getLogger("crawler-test")
    caplog.set_level(logging.WARNING, logger="crawler-test")
    rule_crawler = DirectoryCrawler(
        make_rule([ExtensionFilter("txt")]), base_dir=tree, quiet=quiet, logger=logger
    )

    rule_crawler.crawl(tree)

    warnings = [record for record in caplog.records if record.levelno == logging.WARNING]
    assert len(warnings) == expected_warnings
    assert all("crawl.unreadable_dir" in record.getMessage() for record in warnings)
    assert [failure.stage for failure in rule_crawler.failures] == ["list"]


def test_dangling_symlink_is_recorded_as_metadata_failure(tree: Path) -> None:
    (tree / "gone.txt").symlink_to(tree / "missing-target.txt")
    rule_crawler = DirectoryCrawler(make_rule([ExtensionFilter("txt")]), base_dir=tree)

    results = rule_crawler.crawl(tree)

    assert sorted(context.path.name for context in results) == ["a.txt", "d.txt"]
    assert [(failure.path.name, failure.stage) for failure in rule_crawler.failures] == [("gone.txt", "metadata")]
