# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Engine configuration.

On disk the configuration is a JSON object pinned to a format/version pair:

    {"format": "irforge-config", "version": 0, "opt_level": 2, ...}

Unknown formats, versions and keys are rejected rather than ignored so a typo
never silently falls back to a default.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from irforge.enums import VerifierFailureAction, verifier_action_from_name, verifier_action_name
from irforge.errors import ConfigError, UnknownNativeEnum

CONFIG_FORMAT = "irforge-config"
CONFIG_VERSION = 0

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class EngineConfig:
	"""
	Native engine settings.

	triple: target triple for new modules and code generation (None = host).
	data_layout: data layout string stamped on new modules ("" = engine default).
	cpu/features: forwarded to the native target machine.
	opt_level: code generation optimisation level, 0-3.
	verifier_action: default failure action for `Verifier.verify`.
	log_level: level the CLI configures logging with.
	"""

	triple: Optional[str] = None
	data_layout: str = ""
	cpu: str = ""
	features: str = ""
	opt_level: int = 2
	verifier_action: VerifierFailureAction = VerifierFailureAction.RETURN_STATUS
	log_level: str = "WARNING"

	def __post_init__(self) -> None:
		if self.triple is not None and not isinstance(self.triple, str):
			raise ConfigError("triple must be a string or null")
		for name in ("data_layout", "cpu", "features"):
			if not isinstance(getattr(self, name), str):
				raise ConfigError(f"{name} must be a string")
		if isinstance(self.opt_level, bool) or self.opt_level not in (0, 1, 2, 3):
			raise ConfigError(f"opt_level must be 0..3, got {self.opt_level!r}")
		if not isinstance(self.verifier_action, VerifierFailureAction):
			raise ConfigError(f"verifier_action must be a VerifierFailureAction, got {self.verifier_action!r}")
		if not isinstance(self.log_level, str) or self.log_level not in _LOG_LEVELS:
			raise ConfigError(f"log_level must be one of {sorted(_LOG_LEVELS)}, got {self.log_level!r}")


def config_from_json(obj: Any) -> EngineConfig:
	if not isinstance(obj, dict) or obj.get("format") != CONFIG_FORMAT or obj.get("version") != CONFIG_VERSION:
		raise ConfigError("unsupported config format/version")
	known = {f.name for f in fields(EngineConfig)}
	values: Dict[str, Any] = {}
	for key, value in obj.items():
		if key in ("format", "version"):
			continue
		if key not in known:
			raise ConfigError(f"unknown config key {key!r}")
		values[key] = value
	if "verifier_action" in values:
		try:
			values["verifier_action"] = verifier_action_from_name(values["verifier_action"])
		except (UnknownNativeEnum, TypeError) as err:
			raise ConfigError(f"invalid verifier_action {values['verifier_action']!r}") from err
	return EngineConfig(**values)


def config_to_json(cfg: EngineConfig) -> Dict[str, Any]:
	obj: Dict[str, Any] = {"format": CONFIG_FORMAT, "version": CONFIG_VERSION}
	obj.update(asdict(cfg))
	obj["verifier_action"] = verifier_action_name(cfg.verifier_action)
	return obj


def load_config(path: Path) -> EngineConfig:
	try:
		obj = json.loads(path.read_text(encoding="utf-8"))
	except (json.JSONDecodeError, UnicodeDecodeError) as err:
		raise ConfigError(f"{path}: invalid JSON: {err}") from err
	return config_from_json(obj)


def dump_config(path: Path, cfg: EngineConfig) -> None:
	path.parent.mkdir(parents=True, exist_ok=True)
	path.write_text(json.dumps(config_to_json(cfg), sort_keys=True, separators=(",", ":")) + "\n", encoding="utf-8")
