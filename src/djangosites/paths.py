from __future__ import annotations

from pathlib import PurePosixPath

import msgspec
from msgspec import UNSET

from djangosites.config import SiteConfig

RUN_DIR = "/run"


class SitePaths(msgspec.Struct, frozen=True, kw_only=True):
    """
    Filesystem locations of one site.

    Every artifact referencing one of these (units, Caddy stanzas, tmpfiles rules,
    the manage script) must read it from here so they never disagree.
    """

    base_dir: str
    media_dir: str
    static_root: str
    secret_key_file: str
    gunicorn_run_dir: str
    gunicorn_sock: str
    collects_static: bool  # static files are collected at activation time

    @property
    def runtime_directory(self) -> str:
        """Name handed to systemd's RuntimeDirectory=, relative to /run."""
        return PurePosixPath(self.gunicorn_run_dir).relative_to(RUN_DIR).as_posix()

    @classmethod
    def for_site(cls, name: str, site: SiteConfig, web_root: str) -> SitePaths:
        if site.base_dir is UNSET:
            base_dir = PurePosixPath(web_root) / name
        else:
            base_dir = PurePosixPath(site.base_dir)

        collects_static = site.static_files_package is UNSET
        if collects_static:
            static_root = str(base_dir / "static")
        else:
            static_root = str(PurePosixPath(site.static_files_package))

        gunicorn_run_dir = PurePosixPath(RUN_DIR) / f"gunicorn_{name}"
        return cls(
            base_dir=str(base_dir),
            media_dir=str(base_dir / "media"),
            static_root=static_root,
            secret_key_file=str(base_dir / "secret_key"),
            gunicorn_run_dir=str(gunicorn_run_dir),
            gunicorn_sock=str(gunicorn_run_dir / "gunicorn.sock"),
            collects_static=collects_static,
        )
