from __future__ import annotations

from pathlib import Path

from sparkle.crawler import crawl
from sparkle.organizer import Organizer
from sparkle.rules import load_rules


def _config(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "sparkle.toml"
    path.write_text(body, encoding="utf-8")
    return path


def test_basic_workflow_with_echo_action(tmp_path: Path) -> None:
    workdir = tmp_path / "work"
    workdir.mkdir()
    test_file = workdir / "test.txt"
    test_file.write_text("test content", encoding="utf-8")
    config = _config(
        tmp_path,
        f"""
[[rules]]
name = "echo_test"
locations = ["{workdir.as_posix()}"]
subfolders = false
filters = [{{ extension = "txt" }}]
actions = [{{ echo = "Found text file" }}]
""",
    )

    rule = load_rules(config)[0]
    results = crawl(workdir, rule, quiet=True)

    assert len(results) == 1
    assert results[0].path == test_file
    assert test_file.exists()


def test_workflow_with_multiple_file_types(tmp_path: Path) -> None:
    workdir = tmp_path / "work"
    workdir.mkdir()
    (workdir / "code.rs").write_text("fn main() {}", encoding="utf-8")
    (workdir / "config.yml").write_text("key: value", encoding="utf-8")
    (workdir / "readme.md").write_text("# Title", encoding="utf-8")
    (workdir / "ignored.xyz").write_text("unknown", encoding="utf-8")
    config = _config(
        tmp_path,
        f"""
[[rules]]
name = "code_files"
locations = ["{workdir.as_posix()}"]
subfolders = false
filters = [{{ extension = "rs" }}]
actions = [{{ echo = "Found Rust file" }}]

[[rules]]
name = "config_files"
locations = ["{workdir.as_posix()}"]
subfolders = false
filters = [{{ extension = "yml" }}]
actions = [{{ echo = "Found config file" }}]
""",
    )

    code_rule, config_rule = load_rules(config)
    rust_results = crawl(workdir, code_rule, quiet=True)
    yml_results = crawl(workdir, config_rule, quiet=True)

    assert [context.path.name for context in rust_results] == ["code.rs"]
    assert [context.path.name for context in yml_results] == ["config.yml"]


def test_organizer_runs_every_rule_and_location(tmp_path: Path) -> None:
    inbox = tmp_path / "inbox"
    downloads = tmp_path / "downloads"
    archive = tmp_path / "archive"
    for folder in (inbox, downloads, archive):
        folder.mkdir()
    (inbox / "old_invoice.txt").write_text("invoice", encoding="utf-8")
    (downloads / "draft.txt").write_text("draft", encoding="utf-8")
    (downloads / "tmp-cache.bin").write_bytes(b"\x00" * 10)
    config = _config(
        tmp_path,
        f"""
[[rules]]
name = "archive texts"
locations = ["{inbox.as_posix()}", "{downloads.as_posix()}"]
filters = [{{ extension = "txt" }}]
actions = [
    {{ move = "{archive.as_posix()}" }},
    {{ rename = {{ pattern = "^old_", replacement = "" }} }},
]

[[rules]]
name = "drop caches"
locations = ["{downloads.as_posix()}"]
filters = [{{ name_contains = "tmp-" }}]
actions = ["delete"]
""",
    )

    summary = Organizer(base_dir=tmp_path).run(load_rules(config))

    assert summary.matched_files == 3
    assert summary.failed_files == 0
    assert sorted(p.name for p in archive.iterdir()) == ["draft.txt", "invoice.txt"]
    assert list(downloads.iterdir()) == []
    assert {context.base_dir for outcome in summary.outcomes for context in outcome.contexts} == {tmp_path}
