import pytest
from unittest.mock import mock_open
from soilrisk.services import config_loader
from soilrisk.analysis.models import DEFAULT_LOSS_RATE_SETTINGS

# This is a fake config.ini file that we'll "load"
FAKE_INI_CONTENT = """
[basic]
use_database = postgresql
standards_file =

[postgresql]
host = localhost
user = testuser
port = 5433
pool_size = 32

[analyst]
id = analyst-01
display_name = Jane Doe

[evaluation]
max_allocation_retries = 0

[loss_rate]
aggressive_mean = 30
ph_min = abc
aggressive_soil_type = waterlogged
"""


@pytest.fixture
def fake_config(mocker):
    """Pretend config.ini exists and holds FAKE_INI_CONTENT."""
    mocker.patch("builtins.open", mock_open(read_data=FAKE_INI_CONTENT))
    mocker.patch("os.path.exists", return_value=True)


def test_load_config_parses_correctly(fake_config):
    """
    Tests that the loader correctly parses strings and integers.
    """
    config = config_loader.load_config(section='postgresql')

    assert config['host'] == 'localhost'
    assert config['user'] == 'testuser'
    # Check that it correctly converted pool_size and port to int
    assert config['pool_size'] == 32
    assert isinstance(config['pool_size'], int)
    assert config['port'] == 5433


def test_load_config_raises_file_not_found(mocker):
    """
    Tests that it raises an error if the file doesn't exist.
    """
    mocker.patch("os.path.exists", return_value=False)

    with pytest.raises(FileNotFoundError):
        config_loader.load_config(section='basic')


def test_load_config_raises_for_missing_section(fake_config):
    with pytest.raises(KeyError):
        config_loader.load_config(section='mysql')


def test_config_dir_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv('SOILRISK_CONFIG_DIR', str(tmp_path))
    assert config_loader.get_config_path('config.ini') == str(tmp_path / 'config.ini')


def test_loss_rate_settings_override_defaults(fake_config):
    """
    Keys in [loss_rate] override defaults; invalid values keep the default.
    """
    settings = config_loader.load_loss_rate_settings()

    assert settings.aggressive_mean == 30.0
    assert settings.aggressive_soil_type == 'waterlogged'
    # 'abc' is not a float
    assert settings.ph_min == DEFAULT_LOSS_RATE_SETTINGS.ph_min
    # Untouched keys keep their defaults
    assert settings.steel_loss_rate == DEFAULT_LOSS_RATE_SETTINGS.steel_loss_rate


def test_loss_rate_settings_without_file(mocker):
    mocker.patch("os.path.exists", return_value=False)
    assert config_loader.load_loss_rate_settings() == DEFAULT_LOSS_RATE_SETTINGS


def test_allocation_retries_are_at_least_one(fake_config):
    settings = config_loader.load_evaluation_settings()
    assert settings.max_allocation_retries == 1
