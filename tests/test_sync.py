"""Tests for the tree synchronizer."""

import os
from pathlib import Path

import pytest

import sync.tree as tree
from conftest import ITER, PASS
from storage.envelope import load_envelope
from utils.core import load_secret
from utils.errors import ConfigurationError


def _mirror_files(mirror: Path):
    return sorted(p.relative_to(mirror).as_posix() for p in mirror.rglob("*") if p.is_file())


class TestSyncTree:

    def test_mirror_completeness(self, source_tree, mirror):
        report = tree.sync_tree(source_tree, mirror, PASS, ITER, prune=True)
        assert report.ok
        assert report.encrypted == ["a.txt", "b.txt", "nested/c.bin"]
        assert _mirror_files(mirror) == ["a.txt.json", "b.txt.json", "nested/c.bin.json"]

    def test_envelopes_decrypt_to_source(self, source_tree, mirror):
        tree.sync_tree(source_tree, mirror, PASS, ITER)
        assert load_secret(mirror, "a.txt", PASS) == b"alpha"
        assert load_secret(mirror, "nested/c.bin", PASS) == b"\x00\x01\x02charlie"

    def test_iterations_recorded(self, source_tree, mirror):
        tree.sync_tree(source_tree, mirror, PASS, 1500)
        assert load_envelope(mirror / "a.txt.json").iterations == 1500

    def test_path_set_idempotent_bytes_fresh(self, source_tree, mirror):
        tree.sync_tree(source_tree, mirror, PASS, ITER, prune=True)
        first = {p: (mirror / p).read_bytes() for p in _mirror_files(mirror)}
        tree.sync_tree(source_tree, mirror, PASS, ITER, prune=True)
        second = {p: (mirror / p).read_bytes() for p in _mirror_files(mirror)}
        assert set(first) == set(second)
        for p in first:
            assert first[p] != second[p]

    def test_prune_removes_stale(self, source_tree, mirror):
        (source_tree / "d.txt").write_text("delta")
        tree.sync_tree(source_tree, mirror, PASS, ITER)
        (source_tree / "d.txt").unlink()
        report = tree.sync_tree(source_tree, mirror, PASS, ITER, prune=True)
        assert report.pruned == ["d.txt.json"]
        assert "d.txt.json" not in _mirror_files(mirror)

    def test_no_prune_retains_stale(self, source_tree, mirror):
        (source_tree / "d.txt").write_text("delta")
        tree.sync_tree(source_tree, mirror, PASS, ITER)
        (source_tree / "d.txt").unlink()
        report = tree.sync_tree(source_tree, mirror, PASS, ITER, prune=False)
        assert report.pruned == []
        assert "d.txt.json" in _mirror_files(mirror)

    def test_prune_ignores_non_envelope_files(self, source_tree, mirror):
        mirror.mkdir()
        (mirror / "README.md").write_text("keep")
        (mirror / "leftover.txt.json.tmp").write_text("partial")
        tree.sync_tree(source_tree, mirror, PASS, ITER, prune=True)
        assert (mirror / "README.md").exists()
        assert (mirror / "leftover.txt.json.tmp").exists()

    def test_prune_removes_stale_in_deleted_directory(self, source_tree, mirror):
        tree.sync_tree(source_tree, mirror, PASS, ITER)
        (source_tree / "nested" / "c.bin").unlink()
        (source_tree / "nested").rmdir()
        report = tree.sync_tree(source_tree, mirror, PASS, ITER, prune=True)
        assert report.pruned == ["nested/c.bin.json"]

    def test_partial_failure_isolation(self, source_tree, mirror, monkeypatch):
        real_read = tree._read_source

        def flaky_read(path: Path) -> bytes:
            if path.name == "b.txt":
                raise PermissionError(13, "Permission denied", str(path))
            return real_read(path)

        monkeypatch.setattr(tree, "_read_source", flaky_read)
        report = tree.sync_tree(source_tree, mirror, PASS, ITER, prune=True)

        assert not report.ok
        assert [(f.path, f.stage) for f in report.failures] == [("b.txt", "encrypt")]
        assert report.encrypted == ["a.txt", "nested/c.bin"]
        assert load_secret(mirror, "a.txt", PASS) == b"alpha"
        assert load_secret(mirror, "nested/c.bin", PASS) == b"\x00\x01\x02charlie"

    def test_failed_file_keeps_previous_envelope(self, source_tree, mirror, monkeypatch):
        tree.sync_tree(source_tree, mirror, PASS, ITER)

        def broken_read(path: Path) -> bytes:
            raise OSError("disk on fire")

        monkeypatch.setattr(tree, "_read_source", broken_read)
        report = tree.sync_tree(source_tree, mirror, PASS, ITER, prune=True)
        assert len(report.failures) == 3
        assert load_secret(mirror, "b.txt", PASS) == b"bravo"

    def test_missing_source_root_does_not_wipe_mirror(self, tmp_path, source_tree, mirror):
        tree.sync_tree(source_tree, mirror, PASS, ITER)
        report = tree.sync_tree(tmp_path / "missing", mirror, PASS, ITER, prune=True)
        assert report.pruning_skipped
        assert [f.stage for f in report.failures] == ["walk"]
        assert len(_mirror_files(mirror)) == 3

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="needs symlinks")
    def test_symlinks_are_skipped(self, tmp_path, source_tree, mirror):
        target = tmp_path / "outside.txt"
        target.write_text("outside")
        (source_tree / "link.txt").symlink_to(target)
        report = tree.sync_tree(source_tree, mirror, PASS, ITER)
        assert "link.txt" not in report.encrypted
        assert not (mirror / "link.txt.json").exists()

    def test_empty_passphrase_rejected(self, source_tree, mirror):
        with pytest.raises(ConfigurationError):
            tree.sync_tree(source_tree, mirror, "", ITER)
        assert not mirror.exists()

    def test_single_worker(self, source_tree, mirror):
        report = tree.sync_tree(source_tree, mirror, PASS, ITER, max_workers=1)
        assert len(report.encrypted) == 3


def test_list_files_reports_unreadable_root(tmp_path):
    from utils.helper import list_files_recursive
    errors = []
    assert list_files_recursive(tmp_path / "nope", on_error=lambda rel, e: errors.append(rel)) == []
    assert errors == [""]


def test_under_any():
    assert tree._under_any("x/y.json", ["x"])
    assert not tree._under_any("xy/z.json", ["x"])
    assert tree._under_any("anything.json", [""])
