from __future__ import annotations

import msgspec


class DatabaseUser(msgspec.Struct, kw_only=True):
    name: str
    ensure_permissions: dict[str, str] = {}


class PostgresqlConfig(msgspec.Struct, kw_only=True):
    enable: bool = False
    ensure_databases: list[str] = []
    ensure_users: list[DatabaseUser] = []


def local_database_url(name: str) -> str:
    """Peer-authenticated connection to the database named after the site."""
    return f"postgresql:///{name}"


def database_user(name: str) -> DatabaseUser:
    return DatabaseUser(
        name=name, ensure_permissions={f"DATABASE {name}": "ALL PRIVILEGES"}
    )
