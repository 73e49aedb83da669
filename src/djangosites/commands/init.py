from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

import cappa
import tomli_w

from djangosites.commands import BaseCommand
from djangosites.config import CONFIG_FILE


@cappa.command(help="Initialize a new djangosites.toml configuration file")
@dataclass
class Init(BaseCommand):
    """
    Examples:
      djangosites init                              Create a config for the current project
      djangosites init --hostname blog.example.com  Use a specific hostname
    """

    hostname: Annotated[
        str | None,
        cappa.Arg(long="--hostname", help="Hostname of the site"),
    ] = None

    def __call__(self):
        config_file = Path(CONFIG_FILE)
        if config_file.exists():
            self.output.warning(f"{CONFIG_FILE} file already exists, skipping generation")
            return

        app_name = Path().resolve().stem.replace("-", "_").replace(" ", "_").lower()

        pyproject_toml = Path("pyproject.toml")
        if pyproject_toml.exists():
            pyproject = tomllib.loads(pyproject_toml.read_text())
            project_name = pyproject.get("project", {}).get("name")
            if project_name:
                app_name = project_name.replace("-", "_").lower()

        config = self._generate_toml(app_name)
        config_file.write_text(tomli_w.dumps(config))
        self.output.success(f"Generated {CONFIG_FILE}")
        self.output.info(
            "\nNext steps:\n"
            f"  1. Point package.interpreter at the python of your application environment\n"
            f"  2. Check the configuration: djangosites check\n"
            f"  3. Render the artifacts: djangosites render"
        )

    def _generate_toml(self, app_name: str) -> dict:
        hostname = self.hostname or f"{app_name}.example.com"
        return {
            "web_root": "/var/www",
            "proxy_group": "caddy",
            "sites": {
                app_name: {
                    "hostname": hostname,
                    "aliases": [f"www.{hostname}"],
                    "nb_workers": 2,
                    "package": {
                        "name": app_name,
                        "interpreter": f"/opt/{app_name}/.venv/bin/python",
                    },
                }
            },
        }
