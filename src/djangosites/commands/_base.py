from dataclasses import dataclass
from functools import cached_property

import cappa
from rich.markup import escape

from djangosites.aggregate import SystemConfig, render_config
from djangosites.config import Config


class MessageFormatter:
    """Styled user-facing messages on top of cappa's output."""

    def __init__(self, output: cappa.Output):
        self._output = output

    def success(self, message: str):
        self._output.output(f"[green]{message}[/green]")

    def info(self, message: str):
        self._output.output(f"[blue]{message}[/blue]")

    def warning(self, message: str):
        self._output.output(f"[yellow]{message}[/yellow]")

    def error(self, message: str):
        self._output.error(f"[red]{message}[/red]")

    def output(self, content: str):
        """Print rendered content as-is, brackets included."""
        self._output.output(escape(content))


@dataclass
class BaseCommand:
    """
    A command that provides access to the sites configuration and to everything
    rendered from it.
    """

    @cached_property
    def config(self) -> Config:
        return Config.read()

    @cached_property
    def system(self) -> SystemConfig:
        return render_config(self.config)

    @cached_property
    def stdout(self) -> cappa.Output:
        return cappa.Output()

    @cached_property
    def output(self) -> MessageFormatter:
        return MessageFormatter(self.stdout)
