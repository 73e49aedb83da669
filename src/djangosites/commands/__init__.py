from djangosites.commands._base import BaseCommand, MessageFormatter

__all__ = ["BaseCommand", "MessageFormatter"]
