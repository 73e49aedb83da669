from __future__ import annotations

import logging

import msgspec
from msgspec import UNSET

from djangosites import caddy, postgresql, scripts, systemd, tmpfiles
from djangosites.caddy import VirtualHost
from djangosites.config import Config, SiteConfig
from djangosites.paths import SitePaths
from djangosites.postgresql import DatabaseUser
from djangosites.systemd import ServiceUnit
from djangosites.tmpfiles import TmpfilesRule
from djangosites.users import SystemUser

logger = logging.getLogger(__name__)


class SiteBundle(msgspec.Struct, kw_only=True):
    """Everything rendered for one site, before merging with the other sites."""

    name: str
    manage_script: str
    secret_key_unit: ServiceUnit
    maintenance_unit: ServiceUnit
    gunicorn_unit: ServiceUnit
    database_user: DatabaseUser | None
    virtual_hosts: dict[str, VirtualHost]
    tmpfiles_rules: list[TmpfilesRule]
    user: SystemUser

    @property
    def services(self) -> dict[str, ServiceUnit]:
        return {
            f"gunicorn-{self.name}": self.gunicorn_unit,
            f"secret-key-{self.name}": self.secret_key_unit,
            f"maintenance-{self.name}": self.maintenance_unit,
        }


def settings_module(site: SiteConfig) -> str:
    if site.settings_module is UNSET:
        return f"{site.package.name}.config.settings.base"
    return site.settings_module


def wsgi_module(site: SiteConfig) -> str:
    if site.wsgi_module is UNSET:
        return f"{site.package.name}.config.wsgi"
    return site.wsgi_module


def site_user(name: str, site: SiteConfig) -> str:
    return name if site.user is UNSET else site.user


def site_group(name: str, site: SiteConfig) -> str:
    return name if site.group is UNSET else site.group


def database_url(name: str, site: SiteConfig) -> str:
    if site.database_url is UNSET:
        return postgresql.local_database_url(name)
    return site.database_url


def environment(name: str, site: SiteConfig, paths: SitePaths) -> dict[str, str]:
    """
    Environment shared by the manage script, the maintenance and gunicorn units.

    extra_env is applied last and may override any computed variable. SECRET_KEY is
    left empty on purpose, the secret key file provides the real value at start.
    """
    env = {
        "DJANGO_SETTINGS_MODULE": settings_module(site),
        "DATABASE_URL": database_url(name, site),
        "ALLOWED_HOSTS": ",".join([site.hostname, *site.aliases]),
        "MEDIA_ROOT": paths.media_dir,
        "MEDIA_URL": site.media_url,
        "STATIC_URL": site.static_url,
        "STATIC_ROOT": paths.static_root,
        "SECRET_KEY": "",
    }
    env.update(site.extra_env)
    return dict(sorted(env.items()))


def environment_files(site: SiteConfig, paths: SitePaths) -> list[str]:
    return [paths.secret_key_file, *site.extra_env_files]


def derive(name: str, site: SiteConfig, config: Config) -> SiteBundle:
    """
    Render every artifact of one site.

    Pure: the same name, site and config always give an equal bundle. The site is
    expected to have been validated by Config already.
    """
    logger.debug(f"Deriving artifacts for site {name}")
    paths = SitePaths.for_site(name, site, web_root=config.web_root)
    user = site_user(name, site)
    group = site_group(name, site)
    env = environment(name, site, paths)
    env_files = environment_files(site, paths)
    local_database = site.database_url is UNSET

    return SiteBundle(
        name=name,
        manage_script=scripts.render_manage_script(
            name,
            user=user,
            package=site.package,
            environment=env,
            environment_files=env_files,
        ),
        secret_key_unit=systemd.secret_key_unit(
            name, user=user, group=group, package=site.package, paths=paths
        ),
        maintenance_unit=systemd.maintenance_unit(
            name,
            user=user,
            group=group,
            package=site.package,
            paths=paths,
            environment=env,
            environment_files=env_files,
            local_database=local_database,
        ),
        gunicorn_unit=systemd.gunicorn_unit(
            name,
            user=user,
            group=group,
            package=site.package,
            paths=paths,
            wsgi_module=wsgi_module(site),
            nb_workers=site.nb_workers,
            worker_class=site.worker_class,
            environment=env,
            environment_files=env_files,
        ),
        database_user=postgresql.database_user(name) if local_database else None,
        virtual_hosts=caddy.site_virtual_hosts(
            name,
            site,
            paths,
            try_duration=config.proxy_try_duration,
            try_interval=config.proxy_try_interval,
        ),
        tmpfiles_rules=tmpfiles.site_rules(
            paths, user=user, group=group, proxy_group=config.proxy_group
        ),
        user=SystemUser(name=user, group=group, home=paths.base_dir),
    )
