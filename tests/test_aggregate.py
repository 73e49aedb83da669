"""Tests for merging several sites into one system configuration."""

from __future__ import annotations

import msgspec
import pytest
from inline_snapshot import snapshot

from djangosites.aggregate import SystemConfig, merge, render_config
from djangosites.config import Config, SiteConfig
from djangosites.errors import ConflictError
from djangosites.site import derive
from djangosites.tmpfiles import render_tmpfiles
from djangosites.users import render_sysusers


def site(hostname: str, name: str, **extra) -> dict:
    return {
        "hostname": hostname,
        "package": {"name": name, "interpreter": f"/opt/{name}/bin/python"},
        **extra,
    }


def render(sites: dict, **config) -> SystemConfig:
    return render_config(msgspec.convert({"sites": sites, **config}, type=Config))


def test_local_assets_site(config):
    system = render_config(config)

    assert list(system.caddy.virtual_hosts) == ["blog.example.com:443"]
    extra_config = system.caddy.virtual_hosts["blog.example.com:443"].extra_config
    assert "handle_path /static/*" in extra_config
    assert "handle_path /media/*" in extra_config
    assert "reverse_proxy @backend" in extra_config

    assert render_tmpfiles(system.tmpfiles_rules) == snapshot(
        "# Generated by djangosites\n"
        "# Learn more: https://www.freedesktop.org/software/systemd/man/tmpfiles.d.html\n"
        "# Type Path Mode User Group Age Argument\n"
        "d /var/www 0755 root root - -\n"
        "d /var/www/blog 0550 blog caddy - -\n"
        "d /var/www/blog/media 0750 blog caddy - -\n"
        "d /var/www/blog/static 0750 blog caddy - -\n"
        "f /var/www/blog/secret_key 0640 blog blog - -\n"
    )

    assert system.postgresql.enable is True
    assert system.postgresql.ensure_databases == ["blog"]
    assert [user.name for user in system.postgresql.ensure_users] == ["blog"]
    assert system.postgresql.ensure_users[0].ensure_permissions == {
        "DATABASE blog": "ALL PRIVILEGES"
    }


def test_remote_static_site(config_dict, site_dict):
    site_dict["static_url"] = "https://cdn.example.com/static/"
    system = render_config(msgspec.convert(config_dict, type=Config))

    assert list(system.caddy.virtual_hosts) == [
        "blog.example.com:443",
        "cdn.example.com:443",
    ]
    primary = system.caddy.virtual_hosts["blog.example.com:443"].extra_config
    assert "/static/" not in primary


def test_basic_auth_only_gates_its_own_site():
    system = render(
        {
            "blog": site(
                "blog.example.com", "blog", auth={"user": "admin", "password": "secret"}
            ),
            "shop": site("shop.example.com", "shop"),
        }
    )

    hosts = system.caddy.virtual_hosts
    assert "basic_auth * {\n\tadmin secret\n}\n" in hosts["blog.example.com:443"].extra_config
    assert "basic_auth" not in hosts["shop.example.com:443"].extra_config


def test_external_database_site():
    system = render(
        {"blog": site("blog.example.com", "blog", database_url="postgresql://ext-host/mydb")}
    )

    assert system.postgresql.enable is False
    assert system.postgresql.ensure_databases == []
    assert system.postgresql.ensure_users == []
    gunicorn = system.services["gunicorn-blog"]
    assert gunicorn.environment["DATABASE_URL"] == "postgresql://ext-host/mydb"
    assert "postgresql.service" not in system.services["maintenance-blog"].after


def test_postgresql_only_ensures_local_databases():
    system = render(
        {
            "blog": site("blog.example.com", "blog"),
            "shop": site(
                "shop.example.com", "shop", database_url="postgresql://ext-host/shop"
            ),
        }
    )

    assert system.postgresql.enable is True
    assert system.postgresql.ensure_databases == ["blog"]


def test_no_site_enables_nothing():
    system = render({})

    assert system == SystemConfig()
    assert system.caddy.enable is False
    assert system.postgresql.enable is False
    assert system.tmpfiles_rules == []
    assert system.services == {}


def test_every_site_gets_its_units_and_script():
    system = render(
        {
            "blog": site("blog.example.com", "blog"),
            "shop": site("shop.example.com", "shop"),
        }
    )

    assert list(system.services) == [
        "gunicorn-blog",
        "secret-key-blog",
        "maintenance-blog",
        "gunicorn-shop",
        "secret-key-shop",
        "maintenance-shop",
    ]
    assert list(system.scripts) == ["manage-blog", "manage-shop"]
    assert system.caddy.enable is True


def test_root_rule_comes_once_and_first():
    system = render(
        {
            "blog": site("blog.example.com", "blog"),
            "shop": site("shop.example.com", "shop"),
        },
        web_root="/srv/www",
    )

    paths = [rule.path for rule in system.tmpfiles_rules]
    assert paths[0] == "/srv/www"
    assert paths.count("/srv/www") == 1
    assert "/srv/www/shop/secret_key" in paths


@pytest.mark.parametrize(
    "shop_extra,message",
    [
        (
            {"hostname": "blog.example.com"},
            "Sites 'blog' and 'shop' both serve blog.example.com:443",
        ),
        (
            {"hostname": "BLOG.example.com"},
            "Sites 'blog' and 'shop' both serve BLOG.example.com:443",
        ),
        (
            {"aliases": ["www.blog.example.com"]},
            "Sites 'blog' and 'shop' both serve www.blog.example.com:443",
        ),
        (
            {"static_url": "https://blog.example.com/static/"},
            "Sites 'blog' and 'shop' both serve blog.example.com:443",
        ),
    ],
)
def test_address_collisions_are_reported(shop_extra, message):
    shop = site("shop.example.com", "shop")
    shop.update(shop_extra)

    with pytest.raises(ConflictError) as exc_info:
        render(
            {
                "blog": site(
                    "blog.example.com", "blog", aliases=["www.blog.example.com"]
                ),
                "shop": shop,
            }
        )
    assert exc_info.value.message == message


def test_same_host_on_other_port_does_not_collide():
    system = render(
        {
            "blog": site("blog.example.com", "blog"),
            "admin": site("blog.example.com", "admin", port=8443),
        }
    )

    assert list(system.caddy.virtual_hosts) == [
        "blog.example.com:443",
        "blog.example.com:8443",
    ]


def test_site_claiming_an_address_twice():
    # Config validation refuses this, derive() on its own does not
    site_config = msgspec.convert(
        site(
            "blog.example.com",
            "blog",
            aliases=["cdn.example.com"],
            static_url="https://cdn.example.com/static/",
        ),
        type=SiteConfig,
    )
    bundle = derive("blog", site_config, Config())

    with pytest.raises(ConflictError) as exc_info:
        merge([bundle], web_root="/var/www")
    assert exc_info.value.message == "Site 'blog' uses the address cdn.example.com:443 twice"


def test_duplicate_site_names(config):
    bundle = derive("blog", config.sites["blog"], config)

    with pytest.raises(ConflictError) as exc_info:
        merge([bundle, bundle], web_root="/var/www")
    assert exc_info.value.message == "Duplicate site names: blog"


def test_shared_user_must_keep_one_group():
    with pytest.raises(ConflictError) as exc_info:
        render(
            {
                "blog": site("blog.example.com", "blog", user="web", group="blog"),
                "shop": site("shop.example.com", "shop", user="web", group="shop"),
            }
        )
    assert exc_info.value.message == (
        "User 'web' is configured with groups 'blog' and 'shop'"
    )


def test_shared_user_is_declared_once():
    system = render(
        {
            "blog": site("blog.example.com", "blog", user="web", group="web"),
            "shop": site("shop.example.com", "shop", user="web", group="web"),
        }
    )

    assert list(system.users) == ["web"]
    assert system.groups == ["web"]
    assert render_sysusers(system.users, system.groups) == snapshot(
        "# Generated by djangosites\n"
        "# Learn more: https://www.freedesktop.org/software/systemd/man/sysusers.d.html\n"
        "g web -\n"
        'u web -:web "djangosites web" /var/www/blog\n'
    )


def test_render_is_deterministic(config):
    first = msgspec.json.encode(render_config(config))
    second = msgspec.json.encode(render_config(config))
    assert first == second


def test_shared_user_keeps_the_first_home(caplog):
    with caplog.at_level("INFO", logger="djangosites"):
        system = render(
            {
                "blog": site("blog.example.com", "blog", user="web", group="web"),
                "shop": site("shop.example.com", "shop", user="web", group="web"),
            }
        )

    assert system.users["web"].home == "/var/www/blog"
    assert "its home stays /var/www/blog" in caplog.text
