from pathlib import Path

import pytest

from floorwatch.infrastructure.utils.config import DEFAULT_PROJECT_ID, FloorWatchConfig, load_config

ENV_VARS = ("LOG_LEVEL", "MARKETPLACE__BASE_URL", "ALERT__MINIMUM_PRICE", "POLLER__INTERVAL_SECONDS")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "floorwatch.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_without_yaml():
    config = load_config()

    assert config.marketplace.project_id == DEFAULT_PROJECT_ID
    assert config.poller.interval_seconds == 180.0
    assert config.poller.history_size == 24
    assert config.alert.minimum_price == "120"
    assert config.alert.mode == "every_poll"


def test_yaml_values_are_loaded(tmp_path):
    path = _write(
        tmp_path,
        """
log_level: debug
marketplace:
  base_url: "https://market.test/"
poller:
  interval_seconds: 60
alert:
  mode: ON_CROSS
notifications:
  backend: log
""",
    )

    config = load_config(path)

    assert config.log_level == "DEBUG"
    assert config.marketplace.base_url == "https://market.test"
    assert config.poller.interval_seconds == 60
    assert config.alert.mode == "on_cross"
    assert config.notifications.backend == "log"


def test_env_overrides_yaml(tmp_path, monkeypatch):
    path = _write(tmp_path, "alert:\n  minimum_price: '120'\n")
    monkeypatch.setenv("ALERT__MINIMUM_PRICE", "95")
    monkeypatch.setenv("POLLER__INTERVAL_SECONDS", "30")

    config = FloorWatchConfig.from_yaml(path)

    assert config.alert.minimum_price == "95"
    assert config.poller.interval_seconds == 30


@pytest.mark.parametrize(
    "text",
    [
        "marketplace:\n  base_url: ftp://nope\n",
        "poller:\n  interval_seconds: 0\n",
        "alert:\n  mode: sometimes\n",
        "notifications:\n  backend: pager\n",
        "log_level: LOUD\n",
        "marketplace: [unclosed\n",
    ],
)
def test_invalid_config_is_value_error(tmp_path, text):
    with pytest.raises(ValueError):
        load_config(_write(tmp_path, text))


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        FloorWatchConfig.from_yaml(tmp_path / "absent.yaml")
