from __future__ import annotations

import msgspec

from djangosites.paths import SitePaths
from djangosites.templates import TMPFILES_HEADER


class TmpfilesRule(msgspec.Struct, kw_only=True):
    """A systemd-tmpfiles line: the path must exist before dependent units start."""

    type: str
    path: str
    mode: str
    user: str
    group: str
    age: str = "-"
    argument: str = "-"

    def __str__(self) -> str:
        return " ".join(
            [self.type, self.path, self.mode, self.user, self.group, self.age, self.argument]
        )


def root_rule(web_root: str) -> TmpfilesRule:
    return TmpfilesRule(type="d", path=web_root, mode="0755", user="root", group="root")


def site_rules(
    paths: SitePaths, *, user: str, group: str, proxy_group: str
) -> list[TmpfilesRule]:
    rules = [
        TmpfilesRule(type="d", path=paths.base_dir, mode="0550", user=user, group=proxy_group),
        TmpfilesRule(type="d", path=paths.media_dir, mode="0750", user=user, group=proxy_group),
    ]
    if paths.collects_static:
        rules.append(
            TmpfilesRule(
                type="d", path=paths.static_root, mode="0750", user=user, group=proxy_group
            )
        )
    rules.append(
        TmpfilesRule(type="f", path=paths.secret_key_file, mode="0640", user=user, group=group)
    )
    return rules


def render_tmpfiles(rules: list[TmpfilesRule]) -> str:
    return TMPFILES_HEADER + "".join(f"{rule}\n" for rule in rules)
