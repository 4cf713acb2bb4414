from pathlib import Path

import pytest

ITER = 1000
PASS = "s3cret"


@pytest.fixture
def source_tree(tmp_path: Path) -> Path:
    raw = tmp_path / "raw"
    raw.mkdir()
    (raw / "a.txt").write_text("alpha", encoding="utf-8")
    (raw / "b.txt").write_text("bravo", encoding="utf-8")
    (raw / "nested").mkdir()
    (raw / "nested" / "c.bin").write_bytes(b"\x00\x01\x02charlie")
    return raw


@pytest.fixture
def mirror(tmp_path: Path) -> Path:
    return tmp_path / "encrypted"
