from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from todo_etl.errors import LoadFailed, PipelineLocked, RetentionCleanupFailed
from todo_etl.lock import output_lock
from todo_etl.tasks.load import list_backups, load, prune_backups
from todo_etl.tasks.transform import transform

from conftest import make_doc, snapshot

START = datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc)


def _dataset(docs, minute: int = 0):
    return transform(docs, now=START + timedelta(minutes=minute))


@pytest.mark.unit
def test_first_load_writes_snapshot_backup_and_marker(tmp_path: Path) -> None:
    out = tmp_path / "out"
    result = load(_dataset([make_doc(1), make_doc(2)]), out)

    assert result.saved is True
    assert result.version == "v2024.06.01.0900"
    assert result.count == 2
    assert (out / "latest.hash").read_text(encoding="utf-8") == result.hash

    latest = json.loads((out / "latest.json").read_text(encoding="utf-8"))
    assert latest["metadata"]["dataHash"] == result.hash
    assert latest["metadata"]["changed"] is True
    assert (out / "dataset-v2024.06.01.0900.json").read_bytes() == (out / "latest.json").read_bytes()


@pytest.mark.unit
def test_unchanged_data_is_a_noop(tmp_path: Path) -> None:
    docs = [make_doc(1), make_doc(2)]
    load(_dataset(docs), tmp_path)
    before = snapshot(tmp_path)

    result = load(_dataset(docs, minute=5), tmp_path)

    assert result.saved is False
    assert result.reason == "No changes detected"
    assert result.version is None
    assert snapshot(tmp_path) == before


@pytest.mark.unit
def test_changed_data_adds_version(tmp_path: Path) -> None:
    load(_dataset([make_doc(1)]), tmp_path)
    result = load(_dataset([make_doc(1, completed=True)], minute=1), tmp_path)

    assert result.saved is True
    assert [p.name for p in list_backups(tmp_path)] == [
        "dataset-v2024.06.01.0901.json",
        "dataset-v2024.06.01.0900.json",
    ]


@pytest.mark.unit
def test_retention_keeps_most_recent(tmp_path: Path) -> None:
    for i in range(8):
        load(_dataset([make_doc(1, title=f"rev {i}")], minute=i), tmp_path, max_backups=5)

    names = [p.name for p in list_backups(tmp_path)]
    assert names == [f"dataset-v2024.06.01.090{i}.json" for i in (7, 6, 5, 4, 3)]


@pytest.mark.unit
def test_prune_ignores_unrelated_files(tmp_path: Path) -> None:
    for name in ("dataset-v1.json", "dataset-v2.json", "dataset-v3.json", "notes.json", "dataset-v0.txt"):
        (tmp_path / name).write_text("{}", encoding="utf-8")

    removed = prune_backups(tmp_path, keep=1)

    assert sorted(p.name for p in removed) == ["dataset-v1.json", "dataset-v2.json"]
    assert (tmp_path / "notes.json").exists()
    assert (tmp_path / "dataset-v0.txt").exists()


@pytest.mark.unit
def test_prune_failure_reports_after_trying_all(tmp_path: Path, monkeypatch) -> None:
    for i in range(4):
        (tmp_path / f"dataset-v{i}.json").write_text("{}", encoding="utf-8")

    def refuse(self, missing_ok=False):
        raise PermissionError("read-only")

    monkeypatch.setattr(Path, "unlink", refuse)
    with pytest.raises(RetentionCleanupFailed, match="dataset-v0.json"):
        prune_backups(tmp_path, keep=2)


@pytest.mark.unit
def test_cleanup_failure_does_not_fail_load(tmp_path: Path, monkeypatch, caplog) -> None:
    for i in range(6):
        (tmp_path / f"dataset-v2000.01.01.000{i}.json").write_text("{}", encoding="utf-8")

    def refuse(self, missing_ok=False):
        raise PermissionError("read-only")

    monkeypatch.setattr(Path, "unlink", refuse)
    with caplog.at_level(logging.WARNING, logger="todo_etl"):
        result = load(_dataset([make_doc(1)]), tmp_path)

    assert result.saved is True
    assert (tmp_path / "latest.hash").read_text(encoding="utf-8") == result.hash
    assert "Cleanup failed" in caplog.text


@pytest.mark.unit
def test_write_failure_raises_load_failed(tmp_path: Path, monkeypatch) -> None:
    def broken_replace(src, dst):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(os, "replace", broken_replace)
    with pytest.raises(LoadFailed) as exc_info:
        load(_dataset([make_doc(1)]), tmp_path)

    assert isinstance(exc_info.value.__cause__, OSError)
    assert not (tmp_path / "latest.hash").exists()
    assert not list(tmp_path.glob("*.tmp"))


@pytest.mark.unit
def test_load_waits_for_output_lock(tmp_path: Path) -> None:
    with output_lock(tmp_path):
        with pytest.raises(PipelineLocked):
            load(_dataset([make_doc(1)]), tmp_path, lock_timeout=0.05)
    assert not (tmp_path / "latest.json").exists()


@pytest.mark.unit
def test_unwritable_lock_file_raises_load_failed(tmp_path: Path, monkeypatch) -> None:
    real_open = os.open

    def deny_lock(path, flags, *args, **kwargs):
        if str(path).endswith(".etl.lock"):
            raise PermissionError(13, "Permission denied", str(path))
        return real_open(path, flags, *args, **kwargs)

    monkeypatch.setattr(os, "open", deny_lock)
    with pytest.raises(LoadFailed, match="Cannot lock output directory") as exc_info:
        load(_dataset([make_doc(1)]), tmp_path)

    assert isinstance(exc_info.value.__cause__, PermissionError)
    assert not (tmp_path / "latest.json").exists()
