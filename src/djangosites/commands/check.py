from __future__ import annotations

import cappa
from msgspec import UNSET
from rich.table import Table

from djangosites.commands import BaseCommand
from djangosites.urls import is_local_url


@cappa.command(help="Validate djangosites.toml and list the configured sites")
class Check(BaseCommand):
    def __call__(self):
        # Rendering surfaces the cross-site conflicts too
        system = self.system
        if not self.config.sites:
            self.output.warning("No site configured")
            return

        table = Table(title="", header_style="bold cyan")
        table.add_column("Site", style="bold")
        table.add_column("Addresses")
        table.add_column("Database")
        table.add_column("Static files")
        table.add_column("Media")
        for name, site in self.config.sites.items():
            addresses = [
                address
                for address, virtual_host in system.caddy.virtual_hosts.items()
                if virtual_host.site == name
            ]
            database = name if site.database_url is UNSET else "external"
            if site.static_files_package is not UNSET:
                static = "prebuilt package"
            else:
                static = "collectstatic"
            if not is_local_url(site.static_url):
                static += f" ({site.static_url})"
            table.add_row(
                name,
                "\n".join(addresses),
                database,
                static,
                site.media_url,
            )

        self.stdout.output(table)
        self.output.success(
            f"Configuration is valid: {len(self.config.sites)} site(s), "
            f"{len(system.services)} unit(s)"
        )
