from __future__ import annotations

import logging
from collections.abc import Iterable

import msgspec

from djangosites import tmpfiles
from djangosites.caddy import VirtualHost
from djangosites.config import Config
from djangosites.errors import ConflictError
from djangosites.postgresql import PostgresqlConfig
from djangosites.site import SiteBundle, derive
from djangosites.systemd import ServiceUnit
from djangosites.tmpfiles import TmpfilesRule
from djangosites.users import SystemUser

logger = logging.getLogger(__name__)


class CaddyConfig(msgspec.Struct, kw_only=True):
    enable: bool = False
    virtual_hosts: dict[str, VirtualHost] = {}


class SystemConfig(msgspec.Struct, kw_only=True):
    """What the external subsystems receive once every site is merged."""

    scripts: dict[str, str] = {}
    postgresql: PostgresqlConfig = msgspec.field(default_factory=PostgresqlConfig)
    services: dict[str, ServiceUnit] = {}
    caddy: CaddyConfig = msgspec.field(default_factory=CaddyConfig)
    tmpfiles_rules: list[TmpfilesRule] = []
    users: dict[str, SystemUser] = {}
    groups: list[str] = []


def merge_virtual_hosts(
    bundles: list[SiteBundle],
) -> dict[str, VirtualHost]:
    """
    Union the Caddy blocks of every site.

    An address (primary or alias, compared case-insensitively) may only be claimed
    once. A second claim is reported instead of replacing the first block.
    """
    virtual_hosts: dict[str, VirtualHost] = {}
    claimed: dict[str, str] = {}
    for bundle in bundles:
        for address, virtual_host in bundle.virtual_hosts.items():
            for claim in virtual_host.addresses(address):
                owner = claimed.get(claim.lower())
                if owner is not None:
                    if owner == bundle.name:
                        raise ConflictError(
                            f"Site '{bundle.name}' uses the address {claim} twice"
                        )
                    raise ConflictError(
                        f"Sites '{owner}' and '{bundle.name}' both serve {claim}"
                    )
                claimed[claim.lower()] = bundle.name
            virtual_hosts[address] = virtual_host
    return virtual_hosts


def merge_users(bundles: list[SiteBundle]) -> tuple[dict[str, SystemUser], list[str]]:
    """
    Declare each user and group once.

    A user shared by several sites keeps the home of the first site declaring it.
    """
    users: dict[str, SystemUser] = {}
    groups: list[str] = []
    for bundle in bundles:
        user = bundle.user
        existing = users.get(user.name)
        if existing is None:
            users[user.name] = user
        elif existing.group != user.group:
            raise ConflictError(
                f"User '{user.name}' is configured with groups "
                f"'{existing.group}' and '{user.group}'"
            )
        elif existing.home != user.home:
            logger.info(
                f"User {user.name} is shared by several sites, "
                f"its home stays {existing.home}"
            )
        if user.group not in groups:
            groups.append(user.group)
    return users, groups


def merge(bundles: Iterable[SiteBundle], *, web_root: str) -> SystemConfig:
    """
    Merge the per-site bundles into the configuration of each subsystem.

    With no bundle at all nothing is enabled and no rule is emitted.
    """
    bundles = list(bundles)
    names = [bundle.name for bundle in bundles]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ConflictError(f"Duplicate site names: {', '.join(duplicates)}")

    if not bundles:
        logger.info("No site configured, nothing to render")
        return SystemConfig()

    services: dict[str, ServiceUnit] = {}
    for bundle in bundles:
        services.update(bundle.services)

    database_users = [b.database_user for b in bundles if b.database_user is not None]
    users, groups = merge_users(bundles)

    logger.info(f"Merged {len(bundles)} site(s), {len(services)} unit(s)")
    return SystemConfig(
        scripts={f"manage-{bundle.name}": bundle.manage_script for bundle in bundles},
        postgresql=PostgresqlConfig(
            enable=bool(database_users),
            ensure_databases=[user.name for user in database_users],
            ensure_users=database_users,
        ),
        services=services,
        caddy=CaddyConfig(enable=True, virtual_hosts=merge_virtual_hosts(bundles)),
        tmpfiles_rules=[
            tmpfiles.root_rule(web_root),
            *(rule for bundle in bundles for rule in bundle.tmpfiles_rules),
        ],
        users=users,
        groups=groups,
    )


def render_config(config: Config) -> SystemConfig:
    """Derive every site of the configuration and merge the result."""
    bundles = [derive(name, site, config) for name, site in config.sites.items()]
    return merge(bundles, web_root=config.web_root)
