import subprocess

import msgspec
import pytest

from djangosites.config import Config
from djangosites.site import derive


def run_shellcheck(script_path):
    try:
        return subprocess.run(
            # the environment files only exist on the target machine
            ["shellcheck", "--exclude=SC1091", str(script_path)],
            capture_output=True,
            text=True,
        )
    except FileNotFoundError:
        pytest.skip("shellcheck not found")


def test_manage_script_shellcheck(config, tmp_path):
    script_content = derive("blog", config.sites["blog"], config).manage_script

    script_path = tmp_path / "manage-blog"
    script_path.write_text(script_content)

    result = run_shellcheck(script_path)
    assert (
        result.returncode == 0
    ), f"ShellCheck failed:\n{result.stdout}\n{result.stderr}"


def test_manage_script_shellcheck_with_extra_env(config_dict, site_dict, tmp_path):
    site_dict["extra_env"] = {"SENTRY_DSN": "https://key@sentry.example.com/1"}
    site_dict["extra_env_files"] = ["/etc/blog/env"]
    config = msgspec.convert(config_dict, type=Config)
    script_content = derive("blog", config.sites["blog"], config).manage_script

    script_path = tmp_path / "manage-blog"
    script_path.write_text(script_content)

    result = run_shellcheck(script_path)
    assert (
        result.returncode == 0
    ), f"ShellCheck failed:\n{result.stdout}\n{result.stderr}"
