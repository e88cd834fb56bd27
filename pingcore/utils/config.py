from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple
from pathlib import Path
import os
import yaml
from dataclasses_json import dataclass_json
import logging
from dotenv import load_dotenv

from ..probes.base import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT, PingError

DEFAULT_CONFIG_FILE = "config/tcping.yml"

# environment variable -> (probe setting, parser)
ENV_OVERRIDES: Dict[str, Tuple[str, Callable[[str], Any]]] = {
	'TCPING_INTERVAL': ('interval', float),
	'TCPING_COUNTER': ('counter', int),
	'TCPING_TIMEOUT': ('timeout', float),
	'TCPING_PROXY': ('proxy', str),
	'TCPING_USER_AGENT': ('user_agent', str),
	'TCPING_DNS_SERVER': ('dns_server', str),
}


class ConfigError(PingError):
	"""Raised for unreadable or invalid configuration"""
	pass


@dataclass_json
@dataclass
class ProbeConfig:
	interval: float = 1.0
	counter: int = 4
	timeout: float = DEFAULT_TIMEOUT
	user_agent: str = DEFAULT_USER_AGENT
	proxy: Optional[str] = None
	dns_server: Optional[str] = None


@dataclass_json
@dataclass
class OutputConfig:
	color: bool = True
	log_dir: Optional[str] = None


@dataclass_json
@dataclass
class PingConfig:
	version: str = "1.0.0"
	probe: ProbeConfig = field(default_factory=ProbeConfig)
	output: OutputConfig = field(default_factory=OutputConfig)


class ConfigManager:
	def __init__(self, config_file: Optional[str] = None):
		self.explicit = config_file is not None
		self.config_file = config_file or DEFAULT_CONFIG_FILE
		self.logger = logging.getLogger(__name__)
		load_dotenv()
		self.config = self._load_config()
		self._apply_environment()
		self._validate_config()

	def __getattr__(self, name: str) -> Any:
		"""Allow direct access to config attributes"""
		if name != 'config' and hasattr(self.config, name):
			return getattr(self.config, name)
		raise AttributeError(f"'ConfigManager' object has no attribute '{name}'")

	def _load_config(self) -> PingConfig:
		"""Load configuration from file, defaults when the default file is absent"""
		path = Path(self.config_file)
		if not path.exists():
			if self.explicit:
				raise ConfigError(f"Config file not found: {path}")
			self.logger.debug(f"No config file at {path}, using defaults")
			return PingConfig()

		try:
			with open(path) as f:
				yaml_config = yaml.safe_load(f) or {}
		except (OSError, yaml.YAMLError) as e:
			raise ConfigError(f"Error loading config {path}: {e}") from e
		if not isinstance(yaml_config, dict):
			raise ConfigError(f"Config {path} must be a mapping")

		try:
			return PingConfig.from_dict(yaml_config)
		except (KeyError, TypeError, ValueError) as e:
			raise ConfigError(f"Invalid config {path}: {e}") from e

	def _apply_environment(self) -> None:
		"""Override probe settings from TCPING_* environment variables"""
		for env_key, (attr, parse) in ENV_OVERRIDES.items():
			value = os.getenv(env_key)
			if value is None or value == '':
				continue
			try:
				setattr(self.config.probe, attr, parse(value))
			except ValueError as e:
				raise ConfigError(f"Invalid value for {env_key}: {value!r}") from e

	def _validate_config(self) -> None:
		"""Validate configuration settings"""
		probe = self.config.probe
		for attr in ('interval', 'timeout', 'counter'):
			value = getattr(probe, attr)
			if isinstance(value, bool) or not isinstance(value, (int, float)):
				raise ConfigError(f"{attr} must be a number, got {value!r}")
		if probe.timeout <= 0:
			raise ConfigError(f"timeout must be positive, got {probe.timeout}")
		if probe.interval < 0:
			raise ConfigError(f"interval must not be negative, got {probe.interval}")

	def get(self, key: str, default: Any = None) -> Any:
		"""Get configuration value with default"""
		try:
			return getattr(self.config, key)
		except AttributeError:
			return default

	def save_config(self, path: Path) -> None:
		path.parent.mkdir(parents=True, exist_ok=True)
		with open(path, 'w') as f:
			yaml.dump(self.config.to_dict(), f)

	@property
	def probe(self) -> ProbeConfig:
		return self.config.probe

	@property
	def output(self) -> OutputConfig:
		return self.config.output
