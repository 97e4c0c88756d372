import json
import textwrap

import pytest
import yaml

from familycal.config_loader import DEFAULT_DATA_PATH, Config, load_config

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch):
    monkeypatch.delenv("FAMILYCAL_DATA_PATH", raising=False)
    monkeypatch.delenv("FAMILYCAL_PORT", raising=False)


def test_missing_file_returns_defaults(tmp_path):
    cfg = load_config(str(tmp_path / "absent.yaml"))

    assert cfg == Config()
    assert cfg.data_path == str(DEFAULT_DATA_PATH)


def test_yaml_file_is_loaded(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        textwrap.dedent(
            """
            data_path: /srv/familycal/events.json
            max_expansion_iterations: 500
            upcoming_limit: 5
            server_port: 9090
            log_level: debug
            """
        ),
        encoding="utf-8",
    )

    cfg = load_config(str(path))

    assert cfg.data_path == "/srv/familycal/events.json"
    assert cfg.max_expansion_iterations == 500
    assert cfg.upcoming_limit == 5
    assert cfg.server_port == 9090
    assert cfg.log_level == "DEBUG"


def test_json_file_is_loaded(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"server_bind": "0.0.0.0", "upcoming_limit": "7"}), encoding="utf-8")

    cfg = load_config(str(path))

    assert cfg.server_bind == "0.0.0.0"
    assert cfg.upcoming_limit == 7


def test_empty_yaml_file_uses_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("", encoding="utf-8")

    assert load_config(str(path)) == Config()


@pytest.mark.parametrize(
    "raw,expected",
    [
        ({"max_expansion_iterations": 0}, 1),
        ({"max_expansion_iterations": 10_000_000}, 100_000),
        ({"max_expansion_iterations": "lots"}, 1000),
        ({"max_expansion_iterations": None}, 1000),
    ],
)
def test_numeric_values_are_clamped(raw, expected):
    assert Config.from_dict(raw).max_expansion_iterations == expected


def test_data_path_expands_user():
    cfg = Config.from_dict({"data_path": "~/cal.json"})

    assert not cfg.data_path.startswith("~")


def test_env_overrides_file_values(tmp_path, monkeypatch):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"data_path": "/a.json", "server_port": 8000}), encoding="utf-8")
    monkeypatch.setenv("FAMILYCAL_DATA_PATH", "/b.json")
    monkeypatch.setenv("FAMILYCAL_PORT", "8181")

    cfg = load_config(str(path))

    assert cfg.data_path == "/b.json"
    assert cfg.server_port == 8181


def test_non_mapping_top_level_raises(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError, match="mapping"):
        load_config(str(path))
