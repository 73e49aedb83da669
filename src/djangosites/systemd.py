from __future__ import annotations

import logging
import re
import shlex

import msgspec
from msgspec import UNSET

from djangosites.config import PackageRef
from djangosites.paths import SitePaths
from djangosites.templates import SECRET_KEY_PROGRAM, SECRET_KEY_SCRIPT, UNIT_TEMPLATE

logger = logging.getLogger(__name__)

SHELL = "/bin/sh"
KILL = "/bin/kill"

_BARE_ARG = re.compile(r"^[A-Za-z0-9_@%$+=:,./-]+$")


class ServiceUnit(msgspec.Struct, kw_only=True):
    """A systemd service, as handed to the process supervisor."""

    description: str
    user: str
    group: str
    type: str = "simple"
    after: list[str] = []
    wanted_by: list[str] = msgspec.field(default_factory=lambda: ["multi-user.target"])
    environment: dict[str, str] = {}
    environment_files: list[str] = []
    exec_start: list[str] = []  # command lines, already quoted for systemd
    exec_reload: str | None = None
    restart: str | None = None
    runtime_directory: str | None = None


def quote_exec_arg(arg: str) -> str:
    """Quote one argument for ExecStart=, escaping specifiers and variables."""
    escaped = arg.replace("%", "%%").replace("$", "$$")
    if _BARE_ARG.match(arg):
        return escaped
    escaped = escaped.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def format_command(argv: list[str]) -> str:
    return " ".join(quote_exec_arg(arg) for arg in argv)


def _environment_line(key: str, value: str) -> str:
    value = value.replace("\\", "\\\\").replace('"', '\\"').replace("%", "%%")
    return f'Environment="{key}={value}"'


def secret_key_unit(
    name: str, *, user: str, group: str, package: PackageRef, paths: SitePaths
) -> ServiceUnit:
    script = SECRET_KEY_SCRIPT.format(
        secret_key_file=shlex.quote(paths.secret_key_file),
        interpreter=shlex.quote(package.interpreter),
        program=shlex.quote(SECRET_KEY_PROGRAM),
    )
    return ServiceUnit(
        description=f"Create secret key for {name}",
        type="oneshot",
        user=user,
        group=group,
        exec_start=[format_command([SHELL, "-c", script])],
    )


def maintenance_unit(
    name: str,
    *,
    user: str,
    group: str,
    package: PackageRef,
    paths: SitePaths,
    environment: dict[str, str],
    environment_files: list[str],
    local_database: bool,
) -> ServiceUnit:
    after = ["network.target"]
    if local_database:
        after.append("postgresql.service")
    after.append(f"secret-key-{name}.service")

    django = [package.interpreter, "-m", "django"]
    commands = [[*django, "migrate", "--noinput"]]
    if paths.collects_static:
        commands.append([*django, "collectstatic", "--noinput"])

    return ServiceUnit(
        description=f"Maintenance tasks for {name}",
        type="oneshot",
        user=user,
        group=group,
        after=after,
        environment=environment,
        environment_files=environment_files,
        exec_start=[format_command(argv) for argv in commands],
    )


def gunicorn_unit(
    name: str,
    *,
    user: str,
    group: str,
    package: PackageRef,
    paths: SitePaths,
    wsgi_module: str,
    nb_workers: int,
    worker_class: str,
    environment: dict[str, str],
    environment_files: list[str],
) -> ServiceUnit:
    argv = [package.interpreter, "-m", "gunicorn", "--name", f"gunicorn-{name}"]
    if package.pythonpath is not UNSET:
        argv += ["--pythonpath", package.pythonpath]
    argv += [
        "--bind",
        f"unix:{paths.gunicorn_sock}",
        "--workers",
        str(nb_workers),
        "--worker-class",
        worker_class,
        f"{wsgi_module}:application",
    ]
    return ServiceUnit(
        description=f"Gunicorn daemon for {name}",
        user=user,
        group=group,
        after=[f"maintenance-{name}.service"],
        environment=environment,
        environment_files=environment_files,
        exec_start=[format_command(argv)],
        exec_reload=f"{KILL} -s HUP $MAINPID",
        restart="on-failure",
        runtime_directory=paths.runtime_directory,
    )


def render_unit(unit_name: str, unit: ServiceUnit) -> str:
    """Render a unit description as the content of a .service file."""
    unit_section = [f"Description={unit.description}"]
    if unit.after:
        unit_section.append(f"After={' '.join(unit.after)}")

    service_section = [
        f"Type={unit.type}",
        f"User={unit.user}",
        f"Group={unit.group}",
    ]
    service_section += [
        _environment_line(key, value) for key, value in unit.environment.items()
    ]
    # Files listed later override earlier ones and Environment=
    service_section += [f"EnvironmentFile={path}" for path in unit.environment_files]
    service_section += [f"ExecStart={command}" for command in unit.exec_start]
    if unit.exec_reload:
        service_section.append(f"ExecReload={unit.exec_reload}")
    if unit.restart:
        service_section.append(f"Restart={unit.restart}")
    if unit.runtime_directory:
        service_section.append(f"RuntimeDirectory={unit.runtime_directory}")

    install_section = []
    if unit.wanted_by:
        install_section.append(f"WantedBy={' '.join(unit.wanted_by)}")

    logger.debug(f"Rendering {unit_name}")
    return UNIT_TEMPLATE.format(
        unit_name=unit_name,
        unit_section="\n".join(unit_section),
        service_section="\n".join(service_section),
        install_section="\n".join(install_section),
    )
