from __future__ import annotations

import re
from typing import Annotated

import cappa
from msgspec import json

from djangosites import caddy, tmpfiles, users
from djangosites.commands import BaseCommand
from djangosites.config import SiteConfig
from djangosites.paths import SitePaths
from djangosites.site import environment, environment_files
from djangosites.systemd import render_unit

SECRET_NAME_PATTERN = re.compile(r"SECRET|PASSWORD|TOKEN|KEY|CREDENTIAL", re.IGNORECASE)


@cappa.command(
    help="Show rendered artifacts",
)
class Show(BaseCommand):
    @cappa.command(help="Show rendered systemd units")
    def units(self):
        """Display every systemd unit file that will be rendered."""
        if not self.system.services:
            self.output.warning("No systemd units configured")
            return

        for name, unit in self.system.services.items():
            filename = f"{name}.service"
            self.output.info(f"\n[bold cyan]# {filename}[/bold cyan]")
            self.output.output(render_unit(filename, unit))

    @cappa.command(help="Show rendered Caddyfile")
    def caddy(self):
        if not self.system.caddy.enable:
            self.output.warning("No site configured, Caddy is not needed")
            return

        self.output.output(caddy.render_caddyfile(self.system.caddy.virtual_hosts))

    @cappa.command(help="Show rendered tmpfiles.d rules")
    def tmpfiles(self):
        if not self.system.tmpfiles_rules:
            self.output.warning("No tmpfiles rules configured")
            return

        self.output.output(tmpfiles.render_tmpfiles(self.system.tmpfiles_rules))

    @cappa.command(help="Show system users and groups as a sysusers.d file")
    def users(self):
        if not self.system.users:
            self.output.warning("No system users configured")
            return

        self.output.output(users.render_sysusers(self.system.users, self.system.groups))

    @cappa.command(help="Show the databases and users PostgreSQL must ensure")
    def database(self):
        if not self.system.postgresql.enable:
            self.output.warning("No site uses a local database")
            return

        content = json.format(json.encode(self.system.postgresql), indent=2).decode()
        self.output.output(content)

    @cappa.command(help="Show the environment of a site")
    def env(
        self,
        site: Annotated[str, cappa.Arg(help="Name of the site")],
        plain: Annotated[
            bool,
            cappa.Arg(
                long="--plain",
                help="Show actual secret values instead of redacting them",
            ),
        ] = False,
    ):
        """Display the environment variables, then the files sourced on top of them."""
        site_config = self._get_site(site)
        paths = SitePaths.for_site(site, site_config, web_root=self.config.web_root)
        env = environment(site, site_config, paths)
        if not plain:
            env = _redact_secrets(env)
            self.output.info(
                "[dim]# Secrets are redacted. Use --plain to show actual values[/dim]"
            )

        lines = [f"{key}={value}" for key, value in env.items()]
        lines += [
            f"# then sourced from {path}" for path in environment_files(site_config, paths)
        ]
        self.output.output("\n".join(lines))

    @cappa.command(help="Show the management script of a site")
    def script(self, site: Annotated[str, cappa.Arg(help="Name of the site")]):
        self._get_site(site)
        self.output.output(self.system.scripts[f"manage-{site}"])

    def _get_site(self, name: str) -> SiteConfig:
        try:
            return self.config.sites[name]
        except KeyError:
            available = ", ".join(self.config.sites) or "none"
            self.output.error(f"Unknown site '{name}'. Available: {available}")
            raise cappa.Exit(code=1) from None


def _redact_secrets(env: dict[str, str]) -> dict[str, str]:
    """Redact the values of variables whose name looks like a secret."""
    return {
        key: '"***REDACTED***"' if value and SECRET_NAME_PATTERN.search(key) else value
        for key, value in env.items()
    }
