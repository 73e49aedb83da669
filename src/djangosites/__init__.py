"""Render systemd, Caddy and PostgreSQL configuration for Django sites."""

__version__ = "0.1.0"
