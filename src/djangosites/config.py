from __future__ import annotations

import logging
import re
import tomllib
from pathlib import Path
from typing import Annotated

import msgspec
from msgspec import UNSET, UnsetType

from djangosites.errors import ImproperlyConfiguredError
from djangosites.urls import is_absolute_url, is_local_url, remote_address

logger = logging.getLogger(__name__)

CONFIG_FILE = "djangosites.toml"

# Site names become user, database, unit and directory names
SITE_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_-]*$")
ENV_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
HOSTNAME_PATTERN = re.compile(r"^[^\s/:,{}]+$")
# Values copied into a Caddyfile as a single token
CADDY_TOKEN_PATTERN = re.compile(r"^[^\s{}\"]+$")
CONTROL_CHARACTERS = re.compile(r"[\x00-\x1f\x7f]")

Port = Annotated[int, msgspec.Meta(ge=1, le=65535)]
WorkerCount = Annotated[int, msgspec.Meta(ge=1)]


class PackageRef(msgspec.Struct, kw_only=True):
    """Handle on the application built by the package build system."""

    name: str
    interpreter: str  # python of the environment holding the app, django and gunicorn
    pythonpath: str | UnsetType = UNSET


class BasicAuth(msgspec.Struct, kw_only=True):
    user: str
    password: str  # hash as produced by `caddy hash-password`


class SiteConfig(msgspec.Struct, kw_only=True):
    package: PackageRef
    hostname: str
    aliases: list[str] = []
    static_files_package: str | UnsetType = UNSET
    settings_module: str | UnsetType = UNSET
    wsgi_module: str | UnsetType = UNSET
    port: Port = 443
    auth: BasicAuth | None = None
    media_url: str = "/media/"
    static_url: str = "/static/"
    nb_workers: WorkerCount = 1
    worker_class: str = "gevent"
    extra_env: dict[str, str] = {}
    extra_env_files: list[str] = []
    disable_acme: bool = False
    user: str | UnsetType = UNSET
    group: str | UnsetType = UNSET
    database_url: str | UnsetType = UNSET
    base_dir: str | UnsetType = UNSET

    def validate(self, name: str) -> None:
        """Check everything msgspec's type system cannot express."""

        def fail(field: str, problem: str):
            raise ImproperlyConfiguredError(f"sites.{name}.{field}: {problem}")

        if not SITE_NAME_PATTERN.fullmatch(name):
            raise ImproperlyConfiguredError(
                f"sites.{name}: site names must be lowercase letters, digits, '-' or '_' "
                "and start with a letter"
            )

        if not HOSTNAME_PATTERN.fullmatch(self.hostname):
            fail("hostname", f"'{self.hostname}' is not a valid hostname")
        for alias in self.aliases:
            if not HOSTNAME_PATTERN.fullmatch(alias):
                fail("aliases", f"'{alias}' is not a valid hostname")

        if self.static_url == self.media_url:
            fail("media_url", f"'{self.media_url}' is also used as static_url")

        own_addresses = {
            f"{host.lower()}:{self.port}" for host in [self.hostname, *self.aliases]
        }
        for field in ("static_url", "media_url"):
            url = getattr(self, field)
            if is_local_url(url):
                if not CADDY_TOKEN_PATTERN.fullmatch(url):
                    fail(field, f"{url!r} must not contain whitespace, quotes or braces")
                continue
            if not is_absolute_url(url):
                fail(
                    field,
                    f"'{url}' must be a path starting with '/' or an http(s) URL",
                )
            address, _ = remote_address(url, self.port)
            if address in own_addresses:
                fail(field, f"'{url}' points back at the site itself ({address})")

        if self.auth is not None:
            for field in ("user", "password"):
                if not CADDY_TOKEN_PATTERN.fullmatch(getattr(self.auth, field)):
                    fail(
                        f"auth.{field}",
                        "must be a single word without whitespace, quotes or braces",
                    )

        for key in self.extra_env:
            if not ENV_NAME_PATTERN.fullmatch(key):
                fail("extra_env", f"'{key}' is not a valid environment variable name")

        # Everything below ends up on a single line of a unit file or script
        for field, value in [
            ("package.name", self.package.name),
            ("package.interpreter", self.package.interpreter),
            ("package.pythonpath", self.package.pythonpath),
            ("settings_module", self.settings_module),
            ("wsgi_module", self.wsgi_module),
            ("worker_class", self.worker_class),
            ("static_url", self.static_url),
            ("media_url", self.media_url),
            ("database_url", self.database_url),
            ("base_dir", self.base_dir),
            ("static_files_package", self.static_files_package),
            *(("extra_env", value) for value in self.extra_env.values()),
            *(("extra_env_files", path) for path in self.extra_env_files),
        ]:
            if value is not UNSET and CONTROL_CHARACTERS.search(value):
                fail(field, f"{value!r} must not contain control characters")

        for field, value in [
            ("package.interpreter", self.package.interpreter),
            ("base_dir", self.base_dir),
            ("static_files_package", self.static_files_package),
            *(("extra_env_files", path) for path in self.extra_env_files),
        ]:
            if value is not UNSET and not value.startswith("/"):
                fail(field, f"'{value}' must be an absolute path")

        if self.database_url is not UNSET and not self.database_url:
            fail("database_url", "must not be empty, remove the key to use a local database")

        for field in ("user", "group"):
            value = getattr(self, field)
            if value is not UNSET and not SITE_NAME_PATTERN.fullmatch(value):
                fail(field, f"'{value}' is not a valid system {field} name")


class Config(msgspec.Struct, kw_only=True):
    sites: dict[str, SiteConfig] = {}
    web_root: str = "/var/www"
    proxy_group: str = "caddy"
    # Bounded window during which Caddy keeps retrying a restarting backend
    proxy_try_duration: str = "5s"
    proxy_try_interval: str = "250ms"

    def __post_init__(self):
        if not self.web_root.startswith("/"):
            raise ImproperlyConfiguredError(
                f"web_root: '{self.web_root}' must be an absolute path"
            )
        for field in (
            "web_root",
            "proxy_group",
            "proxy_try_duration",
            "proxy_try_interval",
        ):
            if not CADDY_TOKEN_PATTERN.fullmatch(getattr(self, field)):
                raise ImproperlyConfiguredError(
                    f"{field}: must be a single word without whitespace, quotes or braces"
                )
        for name, site in self.sites.items():
            site.validate(name)

    @classmethod
    def read(cls, path: Path | None = None) -> Config:
        path = path or Path(CONFIG_FILE)
        if not path.exists():
            raise ImproperlyConfiguredError(
                f"No {path.name} file found, run 'djangosites init' to create one"
            )
        logger.debug(f"Reading configuration from {path}")
        try:
            data = tomllib.loads(path.read_text())
        except tomllib.TOMLDecodeError as e:
            raise ImproperlyConfiguredError(f"{path.name} is not valid TOML: {e}") from e

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> Config:
        try:
            return msgspec.convert(data, type=cls)
        except msgspec.ValidationError as e:
            # msgspec paths stop at "$.sites[...]", find which site is at fault
            sites = data.get("sites")
            if isinstance(sites, dict):
                for name, site in sites.items():
                    try:
                        msgspec.convert(site, type=SiteConfig)
                    except msgspec.ValidationError as site_error:
                        raise ImproperlyConfiguredError(
                            f"sites.{name}: {site_error}"
                        ) from e
            raise ImproperlyConfiguredError(f"Invalid configuration: {e}") from e
