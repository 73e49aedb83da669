from __future__ import annotations

import logging

import msgspec

from djangosites.config import SiteConfig
from djangosites.paths import SitePaths
from djangosites.templates import (
    CADDY_BACKEND_MATCHER,
    CADDY_BASIC_AUTH,
    CADDY_FILE_SERVER,
    CADDY_HANDLE_PATH,
    CADDY_REVERSE_PROXY,
    CADDY_SITE_BLOCK,
    CADDY_TLS_INTERNAL,
    CADDYFILE_HEADER,
)
from djangosites.urls import is_local_url, remote_address

logger = logging.getLogger(__name__)


class VirtualHost(msgspec.Struct, kw_only=True):
    """One Caddy site block, keyed by its primary "host:port" address."""

    site: str  # name of the site owning the block
    server_aliases: list[str] = []
    extra_config: str

    def addresses(self, address: str) -> list[str]:
        return [address, *self.server_aliases]


def _indent(block: str) -> str:
    return "".join(
        f"\t{line}" if line.strip() else line
        for line in block.splitlines(keepends=True)
    )


def site_virtual_hosts(
    name: str,
    site: SiteConfig,
    paths: SitePaths,
    *,
    try_duration: str,
    try_interval: str,
) -> dict[str, VirtualHost]:
    """
    Build the Caddy blocks for a site.

    The primary block answers on the hostname and every alias. Assets with a local
    URL are served from disk next to the proxied application, assets with a remote
    URL get a block of their own on the URL's host.

    Returns:
        Mapping of "host:port" to virtual host
    """
    tls = [CADDY_TLS_INTERNAL] if site.disable_acme else []
    assets = [(site.static_url, paths.static_root), (site.media_url, paths.media_dir)]

    blocks = list(tls)
    if site.auth is not None:
        blocks.append(
            CADDY_BASIC_AUTH.format(user=site.auth.user, password=site.auth.password)
        )

    local_assets = [(url, root) for url, root in assets if is_local_url(url)]
    for url, root in local_assets:
        blocks.append(CADDY_HANDLE_PATH.format(path=url, root=root))
    if local_assets:
        blocks.append(
            CADDY_BACKEND_MATCHER.format(
                paths=" ".join(f"{url}*" for url, _ in local_assets)
            )
        )
    blocks.append(
        CADDY_REVERSE_PROXY.format(
            matcher="@backend " if local_assets else "",
            socket=paths.gunicorn_sock,
            try_duration=try_duration,
            try_interval=try_interval,
        )
    )

    virtual_hosts = {
        f"{site.hostname}:{site.port}": VirtualHost(
            site=name,
            server_aliases=[f"{alias}:{site.port}" for alias in site.aliases],
            extra_config="\n".join(blocks),
        )
    }

    remote_blocks: dict[str, list[str]] = {}
    for url, root in assets:
        if is_local_url(url):
            continue
        address, path = remote_address(url, site.port)
        if path == "/":
            block = CADDY_FILE_SERVER.format(root=root)
        else:
            block = CADDY_HANDLE_PATH.format(path=path, root=root)
        remote_blocks.setdefault(address, []).append(block)

    for address, asset_blocks in remote_blocks.items():
        logger.debug(f"Site {name} serves assets on {address}")
        virtual_hosts[address] = VirtualHost(
            site=name, extra_config="\n".join(tls + asset_blocks)
        )

    return virtual_hosts


def render_caddyfile(virtual_hosts: dict[str, VirtualHost]) -> str:
    content = CADDYFILE_HEADER
    for address, virtual_host in virtual_hosts.items():
        content += CADDY_SITE_BLOCK.format(
            addresses=", ".join(virtual_host.addresses(address)),
            body=_indent(virtual_host.extra_config),
        )
    return content
