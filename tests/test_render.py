from __future__ import annotations

import json

import pytest

from djangosites.commands.render import Render
from djangosites.config import Config
from djangosites.errors import ImproperlyConfiguredError


def test_render_writes_every_artifact(patch_config_read, mock_output, tmp_path):
    output_dir = tmp_path / "build"

    Render(output_dir=output_dir)()

    files = sorted(
        path.relative_to(output_dir).as_posix()
        for path in output_dir.rglob("*")
        if path.is_file()
    )
    assert files == [
        ".djangosites",
        "bin/manage-blog",
        "caddy/Caddyfile",
        "system.json",
        "systemd/gunicorn-blog.service",
        "systemd/maintenance-blog.service",
        "systemd/secret-key-blog.service",
        "sysusers.d/djangosites.conf",
        "tmpfiles.d/djangosites.conf",
    ]
    assert (output_dir / "bin/manage-blog").stat().st_mode & 0o777 == 0o755
    unit = (output_dir / "systemd/gunicorn-blog.service").read_text()
    assert unit.startswith("# gunicorn-blog.service\n")
    mock_output.success.assert_called_once_with(
        f"Rendered 1 site(s) into {output_dir}/ (8 files)"
    )


def test_render_system_json(patch_config_read, mock_output, tmp_path):
    Render(output_dir=tmp_path)()

    system = json.loads((tmp_path / "system.json").read_text())
    assert system["caddy"]["enable"] is True
    assert list(system["caddy"]["virtual_hosts"]) == ["blog.example.com:443"]
    assert system["postgresql"]["ensure_databases"] == ["blog"]
    assert system["services"]["gunicorn-blog"]["runtime_directory"] == "gunicorn_blog"


def test_render_replaces_previous_output(patch_config_read, mock_output, tmp_path):
    Render(output_dir=tmp_path)()
    stale_unit = tmp_path / "systemd" / "gunicorn-old.service"
    stale_unit.write_text("[Unit]\n")
    unrelated = tmp_path / "README"
    unrelated.write_text("keep me\n")

    Render(output_dir=tmp_path)()

    assert not stale_unit.exists()
    assert unrelated.read_text() == "keep me\n"
    assert (tmp_path / "systemd" / "gunicorn-blog.service").exists()


def test_render_refuses_foreign_directory(patch_config_read, mock_output, tmp_path):
    project_bin = tmp_path / "bin"
    project_bin.mkdir()
    (project_bin / "deploy.sh").write_text("#!/bin/sh\n")

    with pytest.raises(ImproperlyConfiguredError) as exc_info:
        Render(output_dir=tmp_path)()

    assert "Refusing to replace bin" in exc_info.value.message
    assert (project_bin / "deploy.sh").exists()
    assert not (tmp_path / "systemd").exists()


def test_render_is_idempotent(patch_config_read, mock_output, tmp_path):
    Render(output_dir=tmp_path / "first")()
    Render(output_dir=tmp_path / "second")()

    for path in (tmp_path / "first").rglob("*"):
        if path.is_file():
            relative = path.relative_to(tmp_path / "first")
            assert path.read_text() == (tmp_path / "second" / relative).read_text()


def test_render_without_sites(mock_output, monkeypatch, tmp_path):
    monkeypatch.setattr(Config, "read", lambda *args, **kwargs: Config())

    Render(output_dir=tmp_path)()

    assert sorted(path.name for path in tmp_path.iterdir()) == [
        ".djangosites",
        "system.json",
    ]
    mock_output.warning.assert_called_once_with(
        "No site configured, only system.json was written"
    )
