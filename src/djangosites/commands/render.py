from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

import cappa
import msgspec

from djangosites import caddy, tmpfiles, users
from djangosites.commands import BaseCommand
from djangosites.errors import ImproperlyConfiguredError
from djangosites.systemd import render_unit

logger = logging.getLogger(__name__)

# Everything below the output directory that a render owns and replaces
OWNED_ENTRIES = ["bin", "systemd", "caddy", "tmpfiles.d", "sysusers.d", "system.json"]
# Left in the output directory, owned entries are only replaced when it exists
MARKER_FILE = ".djangosites"


@cappa.command(help="Render every artifact into a directory")
@dataclass
class Render(BaseCommand):
    output_dir: Annotated[
        Path,
        cappa.Arg(short="-o", long="--output", help="Directory receiving the artifacts"),
    ] = Path("build")

    def __call__(self):
        system = self.system
        self._clean()
        self.output_dir.mkdir(parents=True, exist_ok=True)

        written = []
        for name, script in system.scripts.items():
            path = self._write(Path("bin") / name, script)
            path.chmod(0o755)
            written.append(path)

        for name, unit in system.services.items():
            filename = f"{name}.service"
            written.append(
                self._write(Path("systemd") / filename, render_unit(filename, unit))
            )

        if system.caddy.enable:
            content = caddy.render_caddyfile(system.caddy.virtual_hosts)
            written.append(self._write(Path("caddy") / "Caddyfile", content))

        if system.tmpfiles_rules:
            content = tmpfiles.render_tmpfiles(system.tmpfiles_rules)
            written.append(self._write(Path("tmpfiles.d") / "djangosites.conf", content))

        if system.users:
            content = users.render_sysusers(system.users, system.groups)
            written.append(self._write(Path("sysusers.d") / "djangosites.conf", content))

        content = msgspec.json.format(msgspec.json.encode(system), indent=2).decode()
        written.append(self._write(Path("system.json"), content + "\n"))
        self._write(Path(MARKER_FILE), "Written by djangosites render\n")

        if not system.services:
            self.output.warning("No site configured, only system.json was written")
            return
        self.output.success(
            f"Rendered {len(self.config.sites)} site(s) into {self.output_dir}/ "
            f"({len(written)} files)"
        )

    def _clean(self):
        existing = [e for e in OWNED_ENTRIES if (self.output_dir / e).exists()]
        if existing and not (self.output_dir / MARKER_FILE).exists():
            raise ImproperlyConfiguredError(
                f"Refusing to replace {', '.join(existing)} in {self.output_dir}: "
                "the directory was not written by 'djangosites render'"
            )
        for entry in existing:
            path = self.output_dir / entry
            if path.is_dir():
                logger.debug(f"Removing previous {path}")
                shutil.rmtree(path)
            elif path.exists():
                path.unlink()

    def _write(self, relative_path: Path, content: str) -> Path:
        path = self.output_dir / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        logger.debug(f"Wrote {path}")
        return path
