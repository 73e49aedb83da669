from __future__ import annotations

import msgspec

from djangosites.templates import SYSUSERS_HEADER


class SystemUser(msgspec.Struct, kw_only=True):
    name: str
    group: str
    home: str
    is_system_user: bool = True


def render_sysusers(users: dict[str, SystemUser], groups: list[str]) -> str:
    """Render the users and groups as a sysusers.d(5) file, groups first."""
    lines = [f"g {group} -" for group in groups]
    lines += [
        f'u {user.name} -:{user.group} "djangosites {user.name}" {user.home}'
        for user in users.values()
    ]
    return SYSUSERS_HEADER + "".join(f"{line}\n" for line in lines)
