"""Command-line interface against a local provider."""

import pytest

from blobstore.cli import main
from blobstore.storage import LocalStorage


@pytest.fixture
def config_path(tmp_path, monkeypatch):
    monkeypatch.delenv("DEPLOY_CONTEXT", raising=False)
    path = tmp_path / "blobstore.toml"
    path.write_text(
        f"""
[storage]
default_page_size = 2

[[providers]]
name = "local"
type = "local"
base_path = "{(tmp_path / 'data').as_posix()}"
"""
    )
    return str(path)


@pytest.fixture
def source_file(tmp_path):
    path = tmp_path / "photo.png"
    path.write_bytes(b"\x89PNG" * 10)
    return str(path)


def run(config_path, *args):
    main(["--config", config_path, *args])


def test_put_then_get(config_path, source_file, tmp_path, capsys):
    run(config_path, "put", "images/photo.png", source_file)
    out = tmp_path / "out.png"
    run(config_path, "get", "images/photo.png", "-o", str(out))

    captured = capsys.readouterr()
    assert "Stored images/photo.png" in captured.out
    assert "uploads-dev" in captured.out
    assert "photo.png | image/png | 40B" in captured.err
    assert out.read_bytes() == b"\x89PNG" * 10
    assert LocalStorage(tmp_path / "data", "uploads-dev").path_for("images/photo.png").exists()


def test_has_and_rm(config_path, source_file, capsys):
    run(config_path, "put", "a", source_file)
    run(config_path, "has", "a")
    run(config_path, "rm", "a")
    with pytest.raises(SystemExit) as excinfo:
        run(config_path, "has", "a")

    assert excinfo.value.code == 1
    assert capsys.readouterr().out.splitlines() == [
        "Stored a (40B, image/png) in uploads-dev",
        "yes",
        "Removed a",
        "no",
    ]


def test_get_missing_exits_nonzero(config_path, capsys):
    with pytest.raises(SystemExit) as excinfo:
        run(config_path, "get", "missing")

    assert excinfo.value.code == 1
    assert "Not found: missing" in capsys.readouterr().err


def test_ls_pages_with_cursor(config_path, source_file, capsys):
    for key in ["a", "b", "c"]:
        run(config_path, "put", key, source_file)
    capsys.readouterr()

    run(config_path, "ls")
    first = capsys.readouterr()
    run(config_path, "ls", "--cursor", "2")
    second = capsys.readouterr()

    assert first.out.split() == ["a", "b"]
    assert "Next cursor: 2" in first.err
    assert second.out.split() == ["c"]
    assert "Next cursor" not in second.err


def test_ls_all_with_metadata(config_path, source_file, capsys):
    for key in ["a", "b", "c"]:
        run(config_path, "put", key, source_file)
    capsys.readouterr()

    run(config_path, "ls", "--all", "--metadata")
    captured = capsys.readouterr()

    lines = captured.out.splitlines()
    assert len(lines) == 3
    assert all("photo.png" in line and "image/png" in line for line in lines)
    assert "3 key(s)" in captured.err


def test_upload_prints_public_path(config_path, source_file, capsys):
    run(config_path, "upload", "avatar", source_file)

    assert capsys.readouterr().out.startswith("/uploads/avatar/")


def test_explicit_namespace(config_path, source_file, tmp_path):
    run(config_path, "put", "a", source_file, "--namespace", "archive")

    assert LocalStorage(tmp_path / "data", "archive").path_for("a").exists()


def test_unknown_provider(config_path, capsys):
    with pytest.raises(SystemExit):
        run(config_path, "ls", "--provider", "nope")

    assert "Provider 'nope' not found" in capsys.readouterr().err


def test_missing_config(tmp_path, capsys):
    with pytest.raises(SystemExit):
        main(["--config", str(tmp_path / "absent.toml"), "ls"])

    assert "Configuration file not found" in capsys.readouterr().err
