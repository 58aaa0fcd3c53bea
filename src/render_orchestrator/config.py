"""Configuration system using platformdirs for cross-platform paths."""

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import platformdirs

logger = logging.getLogger(__name__)

APP_NAME = "render-orchestrator"
APP_AUTHOR = "render-orchestrator"
ENV_PREFIX = "RENDER_ORCHESTRATOR_"

SECURITY_PROFILES = ("strict", "balanced", "relaxed")


@dataclass
class Config:
	"""Central configuration with XDG/platform conventions."""

	config_dir: Path = field(default_factory=lambda: Path(platformdirs.user_config_dir(APP_NAME)))
	data_dir: Path = field(default_factory=lambda: Path(platformdirs.user_data_dir(APP_NAME)))

	# Derived paths
	plans_db_path: Path = field(init=False)
	audit_db_path: Path = field(init=False)
	log_dir: Path = field(init=False)

	# Pipeline behaviour
	llm_use_structured_output: bool = True
	security_profile: str = "balanced"
	security_policy: dict[str, Any] = field(default_factory=dict)
	tenant_quota_policy: dict[str, int] = field(
		default_factory=lambda: {"max_executions_per_minute": 120, "max_concurrent_executions": 4}
	)
	quota_window_seconds: float = 60.0
	preview_every_chunks: int = 2
	log_level: str = "INFO"

	def __post_init__(self) -> None:
		self.plans_db_path = self.data_dir / "plans.db"
		self.audit_db_path = self.data_dir / "audits.db"
		self.log_dir = self.data_dir / "logs"

	def ensure_dirs(self) -> None:
		"""Create all required directories."""
		self.config_dir.mkdir(parents=True, exist_ok=True)
		self.data_dir.mkdir(parents=True, exist_ok=True)
		self.log_dir.mkdir(parents=True, exist_ok=True)

	def to_dict(self) -> dict[str, Any]:
		"""Flat view for display, paths rendered as strings."""
		return {
			key: str(value) if isinstance(value, Path) else value
			for key, value in self.__dict__.items()
		}


def _parse_bool(value: str) -> bool:
	return value.strip().lower() in ("1", "true", "yes", "on")


def _apply_env_overrides(config: Config) -> Config:
	"""Apply RENDER_ORCHESTRATOR_* environment variable overrides."""
	path_map = {
		f"{ENV_PREFIX}CONFIG_DIR": "config_dir",
		f"{ENV_PREFIX}DATA_DIR": "data_dir",
	}
	for env_key, attr in path_map.items():
		val = os.getenv(env_key)
		if val:
			setattr(config, attr, Path(val))

	converters = {
		"llm_use_structured_output": _parse_bool,
		"security_profile": str,
		"quota_window_seconds": float,
		"preview_every_chunks": int,
		"log_level": str,
	}
	for attr, convert in converters.items():
		val = os.getenv(f"{ENV_PREFIX}{attr.upper()}")
		if not val:
			continue
		try:
			setattr(config, attr, convert(val))
		except ValueError:
			logger.warning(f"Ignoring invalid {ENV_PREFIX}{attr.upper()}={val!r}")

	quota_map = {
		f"{ENV_PREFIX}MAX_EXECUTIONS_PER_MINUTE": "max_executions_per_minute",
		f"{ENV_PREFIX}MAX_CONCURRENT_EXECUTIONS": "max_concurrent_executions",
	}
	for env_key, key in quota_map.items():
		val = os.getenv(env_key)
		if not val:
			continue
		try:
			config.tenant_quota_policy = {**config.tenant_quota_policy, key: int(val)}
		except ValueError:
			logger.warning(f"Ignoring invalid {env_key}={val!r}")

	# Recompute derived paths after overrides
	config.__post_init__()
	return config


def _apply_toml(config: Config) -> Config:
	"""Apply config.toml overrides if file exists."""
	toml_path = config.config_dir / "config.toml"
	if not toml_path.exists():
		return config

	with open(toml_path, "rb") as f:
		data = tomllib.load(f)

	path_fields = {"config_dir", "data_dir"}
	merged_fields = {"tenant_quota_policy", "security_policy"}
	for key, val in data.items():
		if not hasattr(config, key):
			logger.warning(f"Unknown config key in {toml_path}: {key}")
			continue
		if key in path_fields:
			setattr(config, key, Path(os.path.expanduser(val)))
		elif key in merged_fields:
			setattr(config, key, {**getattr(config, key), **val})
		else:
			setattr(config, key, val)

	# Recompute derived paths after toml overrides
	config.__post_init__()
	return config


def load_config() -> Config:
	"""Load config with precedence: env vars > config.toml > defaults."""
	config = Config()
	# First pass lets RENDER_ORCHESTRATOR_CONFIG_DIR locate config.toml
	config = _apply_env_overrides(config)
	config = _apply_toml(config)
	config = _apply_env_overrides(config)
	if config.security_profile not in SECURITY_PROFILES:
		logger.warning(f"Unknown security profile {config.security_profile!r}, using 'balanced'")
		config.security_profile = "balanced"
	if config.preview_every_chunks < 1:
		config.preview_every_chunks = 1
	config.ensure_dirs()
	return config



# Singleton
_config: Config | None = None


def get_config() -> Config:
	"""Get or create the global config instance."""
	global _config
	if _config is None:
		_config = load_config()
	return _config
