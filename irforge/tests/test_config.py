# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import json
from pathlib import Path

import pytest

from irforge.config import EngineConfig, dump_config, load_config
from irforge.enums import VerifierFailureAction
from irforge.errors import ConfigError


def _write(path: Path, obj) -> Path:
	path.write_text(json.dumps(obj), encoding="utf-8")
	return path


def test_dump_then_load(tmp_path):
	cfg = EngineConfig(triple="aarch64-unknown-linux-gnu", opt_level=3, verifier_action=VerifierFailureAction.PRINT_MESSAGE)
	path = tmp_path / "nested" / "irforge.json"
	dump_config(path, cfg)
	assert load_config(path) == cfg
	text = path.read_text(encoding="utf-8")
	assert '"verifier_action":"print-message"' in text
	assert text.startswith('{"cpu":""')


def test_partial_config_uses_defaults(tmp_path):
	path = _write(tmp_path / "c.json", {"format": "irforge-config", "version": 0, "log_level": "DEBUG"})
	cfg = load_config(path)
	assert cfg.log_level == "DEBUG"
	assert cfg.opt_level == 2
	assert cfg.verifier_action is VerifierFailureAction.RETURN_STATUS


@pytest.mark.parametrize(
	"obj",
	[
		[],
		{"format": "other", "version": 0},
		{"format": "irforge-config", "version": 1},
		{"format": "irforge-config", "version": 0, "bogus": 1},
		{"format": "irforge-config", "version": 0, "opt_level": 7},
		{"format": "irforge-config", "version": 0, "opt_level": True},
		{"format": "irforge-config", "version": 0, "cpu": 3},
		{"format": "irforge-config", "version": 0, "triple": 3},
		{"format": "irforge-config", "version": 0, "verifier_action": "explode"},
		{"format": "irforge-config", "version": 0, "verifier_action": 2},
		{"format": "irforge-config", "version": 0, "log_level": "LOUD"},
		{"format": "irforge-config", "version": 0, "log_level": ["DEBUG"]},
		{"format": "irforge-config", "version": 0, "log_level": {}},
	],
)
def test_rejected_configs(tmp_path, obj):
	with pytest.raises(ConfigError):
		load_config(_write(tmp_path / "c.json", obj))


def test_invalid_json(tmp_path):
	path = tmp_path / "c.json"
	path.write_text("{not json", encoding="utf-8")
	with pytest.raises(ConfigError):
		load_config(path)


def test_undecodable_file(tmp_path):
	path = tmp_path / "c.json"
	path.write_bytes(b"\xff\xfe{}")
	with pytest.raises(ConfigError):
		load_config(path)
