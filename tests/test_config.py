"""Tests for project configuration loading."""

import json
import logging

import pytest

from agentconv.config import AgentConvConfig, load_config
from agentconv.core.loader import ConflictStrategy


def _write_config(project, data):
    config_dir = project / ".agentconv"
    config_dir.mkdir(parents=True, exist_ok=True)
    text = data if isinstance(data, str) else json.dumps(data)
    (config_dir / "config.json").write_text(text, encoding="utf-8")


def test_missing_config_gives_defaults(tmp_project):
    config = load_config(tmp_project)

    assert config == AgentConvConfig()
    assert config.conflict_strategy == ConflictStrategy.PREFER_EXISTING
    assert config.discover_plugins is True
    assert config.rewrite_path_refs is False


def test_full_config(tmp_project):
    _write_config(
        tmp_project,
        {
            "conflictStrategy": "fail",
            "pluginSearchPaths": ["vendor/plugins", "/opt/agentconv"],
            "rewritePathRefs": True,
            "discoverPlugins": False,
        },
    )

    config = load_config(tmp_project)

    assert config.conflict_strategy == ConflictStrategy.FAIL
    assert config.plugin_search_paths == [str(tmp_project / "vendor/plugins"), "/opt/agentconv"]
    assert config.rewrite_path_refs is True
    assert config.discover_plugins is False


def test_malformed_json_falls_back_with_warning(tmp_project, caplog):
    _write_config(tmp_project, "{broken")

    with caplog.at_level(logging.WARNING, logger="agentconv.config"):
        config = load_config(tmp_project)

    assert config == AgentConvConfig()
    assert "Ignoring invalid config" in caplog.text


def test_unknown_strategy_falls_back_with_warning(tmp_project, caplog):
    _write_config(tmp_project, {"conflictStrategy": "coin-flip", "rewritePathRefs": True})

    with caplog.at_level(logging.WARNING, logger="agentconv.config"):
        config = load_config(tmp_project)

    assert config.conflict_strategy == ConflictStrategy.PREFER_EXISTING
    assert config.rewrite_path_refs is False
    assert "coin-flip" in caplog.text


def test_from_dict_rejects_wrong_types():
    with pytest.raises(ValueError):
        AgentConvConfig.from_dict({"pluginSearchPaths": "not-a-list"})
    with pytest.raises(ValueError):
        AgentConvConfig.from_dict({"discoverPlugins": "yes"})


def test_env_disables_discovery(tmp_project, monkeypatch):
    _write_config(tmp_project, {"discoverPlugins": True})
    monkeypatch.setenv("AGENTCONV_DISABLE_PLUGIN_DISCOVERY", "1")

    assert load_config(tmp_project).discover_plugins is False
