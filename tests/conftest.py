import pytest
from unittest.mock import MagicMock, patch

import msgspec

from djangosites.commands import BaseCommand
from djangosites.config import Config


@pytest.fixture
def site_dict():
    return {
        "hostname": "blog.example.com",
        "package": {"name": "blog", "interpreter": "/opt/blog/bin/python"},
    }


@pytest.fixture
def config_dict(site_dict):
    return {"sites": {"blog": site_dict}}


@pytest.fixture
def config(config_dict):
    return msgspec.convert(config_dict, type=Config)


@pytest.fixture
def mock_output():
    with patch.object(BaseCommand, "output", MagicMock()) as mock_output:
        yield mock_output


@pytest.fixture
def mock_stdout():
    with patch.object(BaseCommand, "stdout", MagicMock()) as mock_stdout:
        yield mock_stdout


@pytest.fixture
def patch_config_read(config):
    """Make every command read the `config` fixture instead of djangosites.toml."""
    with patch("djangosites.config.Config.read", return_value=config):
        yield config


@pytest.fixture
def get_outputs():
    def _get(mock_output):
        return "\n".join(str(c.args[0]) for c in mock_output.output.call_args_list)

    return _get
