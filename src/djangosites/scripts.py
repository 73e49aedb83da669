from __future__ import annotations

import shlex

from djangosites.config import PackageRef
from djangosites.templates import MANAGE_SCRIPT_TEMPLATE


def render_manage_script(
    name: str,
    *,
    user: str,
    package: PackageRef,
    environment: dict[str, str],
    environment_files: list[str],
) -> str:
    """
    Render manage-<site>, a wrapper around `python -m django` with the site's environment.

    The environment files are sourced after the exports, in order, so their values
    win like they do for the systemd units.
    """
    exports = "\n".join(
        f"export {key}={shlex.quote(value)}" for key, value in environment.items()
    )
    sources = "\n".join(f"source {shlex.quote(path)}" for path in environment_files)
    return MANAGE_SCRIPT_TEMPLATE.format(
        site=name,
        user=shlex.quote(user),
        exports=exports,
        sources=sources,
        interpreter=shlex.quote(package.interpreter),
    )
