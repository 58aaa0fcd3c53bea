"""Tests for the configuration system."""

import os
from pathlib import Path
from unittest.mock import patch

from render_orchestrator import config as config_module
from render_orchestrator.config import Config, _apply_env_overrides, _apply_toml, get_config, load_config


def _env(tmp_path: Path, **extra: str) -> dict[str, str]:
	env = {
		"RENDER_ORCHESTRATOR_DATA_DIR": str(tmp_path / "data"),
		"RENDER_ORCHESTRATOR_CONFIG_DIR": str(tmp_path / "config"),
	}
	env.update({f"RENDER_ORCHESTRATOR_{k}": v for k, v in extra.items()})
	return env


def test_config_defaults():
	"""Config should have sensible defaults."""
	config = Config()
	assert config.config_dir.is_absolute()
	assert config.data_dir.is_absolute()
	assert config.plans_db_path == config.data_dir / "plans.db"
	assert config.audit_db_path == config.data_dir / "audits.db"
	assert config.log_dir == config.data_dir / "logs"
	assert config.llm_use_structured_output is True
	assert config.security_profile == "balanced"
	assert config.tenant_quota_policy == {"max_executions_per_minute": 120, "max_concurrent_executions": 4}
	assert config.preview_every_chunks == 2


def test_config_env_overrides():
	"""Environment variables should override defaults."""
	config = Config()
	with patch.dict(os.environ, {
		"RENDER_ORCHESTRATOR_DATA_DIR": "/tmp/test-data",
		"RENDER_ORCHESTRATOR_CONFIG_DIR": "/tmp/test-config",
		"RENDER_ORCHESTRATOR_LLM_USE_STRUCTURED_OUTPUT": "false",
		"RENDER_ORCHESTRATOR_SECURITY_PROFILE": "strict",
		"RENDER_ORCHESTRATOR_PREVIEW_EVERY_CHUNKS": "5",
		"RENDER_ORCHESTRATOR_MAX_CONCURRENT_EXECUTIONS": "9",
	}):
		config = _apply_env_overrides(config)
		assert config.data_dir == Path("/tmp/test-data")
		assert config.config_dir == Path("/tmp/test-config")
		# Derived paths should be recomputed
		assert config.plans_db_path == Path("/tmp/test-data/plans.db")
		assert config.audit_db_path == Path("/tmp/test-data/audits.db")
		assert config.llm_use_structured_output is False
		assert config.security_profile == "strict"
		assert config.preview_every_chunks == 5
		assert config.tenant_quota_policy["max_concurrent_executions"] == 9
		assert config.tenant_quota_policy["max_executions_per_minute"] == 120


def test_invalid_env_value_ignored():
	config = Config()
	with patch.dict(os.environ, {"RENDER_ORCHESTRATOR_PREVIEW_EVERY_CHUNKS": "often"}):
		config = _apply_env_overrides(config)
	assert config.preview_every_chunks == 2


def test_toml_overrides(tmp_path: Path):
	"""config.toml values apply and quota tables merge with defaults."""
	config = Config(config_dir=tmp_path / "config", data_dir=tmp_path / "data")
	config.config_dir.mkdir(parents=True)
	(config.config_dir / "config.toml").write_text(
		'security_profile = "relaxed"\n'
		"quota_window_seconds = 30.0\n"
		"unknown_key = 1\n"
		"[tenant_quota_policy]\n"
		"max_executions_per_minute = 10\n"
		"[security_policy]\n"
		'blocked_tags = ["iframe"]\n'
	)

	config = _apply_toml(config)

	assert config.security_profile == "relaxed"
	assert config.quota_window_seconds == 30.0
	assert config.tenant_quota_policy == {"max_executions_per_minute": 10, "max_concurrent_executions": 4}
	assert config.security_policy == {"blocked_tags": ["iframe"]}
	assert not hasattr(config, "unknown_key")


def test_env_beats_toml(tmp_path: Path):
	config_dir = tmp_path / "config"
	config_dir.mkdir()
	(config_dir / "config.toml").write_text('security_profile = "relaxed"\nlog_level = "DEBUG"\n')

	with patch.dict(os.environ, _env(tmp_path, SECURITY_PROFILE="strict")):
		config = load_config()

	assert config.security_profile == "strict"
	assert config.log_level == "DEBUG"


def test_load_config_sanitizes_values(tmp_path: Path):
	with patch.dict(os.environ, _env(tmp_path, SECURITY_PROFILE="paranoid", PREVIEW_EVERY_CHUNKS="0")):
		config = load_config()

	assert config.security_profile == "balanced"
	assert config.preview_every_chunks == 1


def test_config_ensure_dirs(tmp_path: Path):
	"""ensure_dirs should create all required directories."""
	config = Config(
		config_dir=tmp_path / "config",
		data_dir=tmp_path / "data",
	)
	assert not config.config_dir.exists()
	assert not config.data_dir.exists()

	config.ensure_dirs()

	assert config.config_dir.exists()
	assert config.data_dir.exists()
	assert config.log_dir.exists()


def test_load_config_creates_dirs(tmp_path: Path):
	"""load_config should create directories."""
	with patch.dict(os.environ, _env(tmp_path)):
		config = load_config()
		assert config.data_dir.exists()
		assert config.config_dir.exists()


def test_to_dict_renders_paths(tmp_path: Path):
	config = Config(config_dir=tmp_path / "config", data_dir=tmp_path / "data")
	flat = config.to_dict()
	assert flat["plans_db_path"] == str(tmp_path / "data" / "plans.db")
	assert flat["security_profile"] == "balanced"


def test_get_config_is_cached(tmp_path: Path):
	with patch.dict(os.environ, _env(tmp_path)), patch.object(config_module, "_config", None):
		first = get_config()
		assert get_config() is first
		assert first.data_dir == tmp_path / "data"
