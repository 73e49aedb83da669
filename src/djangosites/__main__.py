from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Annotated

import cappa

from djangosites.commands.check import Check
from djangosites.commands.init import Init
from djangosites.commands.render import Render
from djangosites.commands.show import Show


class _CliFormatter(logging.Formatter):
    FORMATS = {
        logging.DEBUG: "    → %(message)s",
        logging.INFO: "==> %(message)s",
        logging.WARNING: "⚠️  %(message)s",
        logging.ERROR: "❌  %(message)s",
    }

    def format(self, record: logging.LogRecord) -> str:
        fmt = self.FORMATS.get(record.levelno, "%(message)s")
        return logging.Formatter(fmt).format(record)


def _setup_logging(verbose: int) -> None:
    if verbose == 0:
        level = logging.WARNING
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logger = logging.getLogger("djangosites")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(_CliFormatter())
        logger.addHandler(handler)
    logger.setLevel(level)


@cappa.command(
    name="djangosites",
    help="Render systemd units, Caddy and PostgreSQL configuration for Django sites",
)
@dataclass
class Djangosites:
    subcommands: cappa.Subcommands[Init | Check | Show | Render]
    verbose: Annotated[
        int,
        cappa.Arg(
            short="-v",
            long="--verbose",
            count=True,
            help="Enable verbose logging (-v info, -vv debug)",
        ),
    ] = 0

    def __post_init__(self):
        _setup_logging(self.verbose)


def main():
    cappa.invoke(Djangosites)


if __name__ == "__main__":
    main()
