"""Tests for loading run configurations."""
import json
from pathlib import Path

import pytest

from staffsim.config import ConfigError, load_config


def test_yaml_config_fills_defaults_and_resolves_paths(tmp_path: Path) -> None:
    path = tmp_path / "run.yaml"
    path.write_text(
        "profiles: data/profiles.csv\n"
        "primary_ratios: [4, 5]\n"
        "rates:\n"
        "  primary: 50\n"
        "constraints:\n"
        "  max_budget: 8000\n",
        encoding="utf-8",
    )
    config = load_config(path)

    assert config["profiles"] == tmp_path / "data" / "profiles.csv"
    assert config["primary_ratios"] == [4, 5]
    assert config["secondary_ratios"] == [10, 12, 14]
    assert config["rates"] == {"primary": 50, "secondary": 22.0}
    assert config["constraints"] == {"min_completion_rate": 90.0, "max_budget": 8000}
    assert config["iterations"] == 1000
    assert config["min_sample_size"] == 3


def test_json_config_is_supported(tmp_path: Path) -> None:
    path = tmp_path / "run.json"
    path.write_text(json.dumps({"survey": "/data/responses.csv", "iterations": 250}), encoding="utf-8")
    config = load_config(path)
    assert config["survey"] == Path("/data/responses.csv")
    assert config["iterations"] == 250


@pytest.mark.parametrize(
    "name, text",
    [
        ("run.yaml", "iterations: 10\n"),
        ("run.yaml", "- just\n- a list\n"),
        ("run.toml", "profiles = 'x.csv'\n"),
        ("run.yaml", "profiles: p.csv\nprimary_ratios: 4\n"),
        ("run.json", "{not json"),
    ],
)
def test_invalid_configs_raise(tmp_path: Path, name: str, text: str) -> None:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


def test_missing_config_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path / "absent.yaml")
