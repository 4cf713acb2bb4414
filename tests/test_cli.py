"""End-to-end tests through the argparse front end."""

import pytest

from conftest import PASS
from ui.cli import build_parser
from utils.core import load_secret


def _run(argv):
    args = build_parser().parse_args(argv)
    args.func(args)


@pytest.fixture
def project(tmp_path, monkeypatch):
    raw = tmp_path / "src" / "stores" / "secrets" / "raw"
    raw.mkdir(parents=True)
    (raw / "alice.txt").write_text("hello")
    monkeypatch.delenv("SECRETS_PRUNE", raising=False)
    monkeypatch.delenv("SECRETS_PBKDF2_ITER", raising=False)
    monkeypatch.delenv("SECRETS_RAW_DIR", raising=False)
    monkeypatch.delenv("SECRETS_ENC_DIR", raising=False)
    return tmp_path


def test_sync_then_decrypt(project, monkeypatch, capsys):
    monkeypatch.setenv("SECRETS_PASSPHRASE", PASS)
    _run(["--root", str(project), "sync", "--iterations", "1000", "--prune"])
    enc = project / "src" / "stores" / "secrets" / "encrypted"
    assert load_secret(enc, "alice.txt", PASS) == b"hello"

    out = project / "alice.out"
    _run(["--root", str(project), "decrypt", "alice.txt", "--out", str(out)])
    assert out.read_text() == "hello"
    assert "[+]" in capsys.readouterr().out


def test_sync_without_passphrase_is_skipped(project, monkeypatch):
    monkeypatch.delenv("SECRETS_PASSPHRASE", raising=False)
    _run(["--root", str(project), "sync", "--iterations", "1000"])
    assert not (project / "src" / "stores" / "secrets" / "encrypted").exists()


def test_sync_require_passphrase_exits_nonzero(project, monkeypatch):
    monkeypatch.delenv("SECRETS_PASSPHRASE", raising=False)
    with pytest.raises(SystemExit) as exc:
        _run(["--root", str(project), "sync", "--require-passphrase"])
    assert exc.value.code == 1


def test_sync_partial_failure_exits_nonzero(project, monkeypatch):
    import sync.tree as tree

    def broken_read(path):
        raise OSError("unreadable")

    monkeypatch.setattr(tree, "_read_source", broken_read)
    monkeypatch.setenv("SECRETS_PASSPHRASE", PASS)
    with pytest.raises(SystemExit) as exc:
        _run(["--root", str(project), "sync", "--iterations", "1000"])
    assert exc.value.code == 1


def test_decrypt_wrong_passphrase(project, monkeypatch, capsys):
    monkeypatch.setenv("SECRETS_PASSPHRASE", PASS)
    _run(["--root", str(project), "sync", "--iterations", "1000"])
    with pytest.raises(SystemExit):
        _run(["--root", str(project), "decrypt", "alice.txt", "--passphrase", "wrong"])
    assert "Invalid passphrase" in capsys.readouterr().out


def test_decrypt_missing(project, monkeypatch, capsys):
    monkeypatch.setenv("SECRETS_PASSPHRASE", PASS)
    with pytest.raises(SystemExit):
        _run(["--root", str(project), "decrypt", "nobody.txt"])
    assert "No envelope" in capsys.readouterr().out


def test_update_videos_requires_owner():
    with pytest.raises(SystemExit) as exc:
        build_parser().parse_args(["update-videos"])
    assert exc.value.code == 2


def test_decrypt_bad_config_exits_cleanly(project, monkeypatch, capsys):
    monkeypatch.setenv("SECRETS_PBKDF2_ITER", "lots")
    with pytest.raises(SystemExit) as exc:
        _run(["--root", str(project), "decrypt", "alice.txt", "--passphrase", PASS])
    assert exc.value.code == 1
    assert "[!] iterations must be an integer" in capsys.readouterr().out


def test_update_videos_bad_config_exits_cleanly(project, monkeypatch, capsys):
    monkeypatch.setenv("SECRETS_ENC_DIR", "src/stores/secrets/raw/enc")
    with pytest.raises(SystemExit) as exc:
        _run(["--root", str(project), "update-videos", "alice"])
    assert exc.value.code == 1
    assert "must not overlap" in capsys.readouterr().out
