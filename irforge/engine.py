# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
NativeEngine: the llvmlite.binding side of the engine boundary.

Textual IR built with llvmlite.ir is handed to LLVM here, either to run the
native verifier or to produce object code / assembly for a target machine.
Each parse goes into a fresh binding context so separate checks never share
native mutable state.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import List, Optional

import llvmlite  # type: ignore
from llvmlite import binding as llvm  # type: ignore
from llvmlite import ir  # type: ignore

from irforge.config import EngineConfig
from irforge.errors import NativeEngineError

logger = logging.getLogger(__name__)

_INIT_LOCK = threading.Lock()
_initialized = False


def _llvmlite_version() -> tuple[int, int]:
	major, minor = llvmlite.__version__.split(".")[:2]
	return int(major), int("".join(ch for ch in minor if ch.isdigit()) or 0)


def initialize_native() -> None:
	"""One-time LLVM initialisation (native target + asm printer)."""
	global _initialized
	with _INIT_LOCK:
		if _initialized:
			return
		# Newer llvmlite initialises the core itself and raises on the old call.
		if _llvmlite_version() < (0, 45):
			llvm.initialize()
		llvm.initialize_native_target()
		llvm.initialize_native_asmprinter()
		_initialized = True
		logger.debug("initialised llvmlite %s (LLVM %s)", llvmlite.__version__, ".".join(map(str, llvm.llvm_version_info)))


class NativeEngine:
	def __init__(self, config: EngineConfig | None = None) -> None:
		self.config = config or EngineConfig()
		initialize_native()

	# Verification -------------------------------------------------------------

	def check(self, text: str) -> List[str]:
		"""Parse and verify textual IR; returns the native diagnostics (empty = valid)."""
		try:
			mod = llvm.parse_assembly(text, context=llvm.create_context())
		except RuntimeError as err:
			return _reasons(err)
		try:
			mod.verify()
		except RuntimeError as err:
			return _reasons(err)
		return []

	def check_function(self, fn: ir.Function) -> List[str]:
		"""
		Verify one function in isolation.

		The function is rendered into a scratch module next to declarations of
		its siblings, so calls and personality references still resolve.
		"""
		module = fn.module
		scratch = ir.Module(name=f"{module.name}.check")
		scratch.triple = module.triple
		scratch.data_layout = module.data_layout
		for other in module.functions:
			if other is not fn:
				ir.Function(scratch, other.ftype, other.name)
		return self.check(str(scratch) + "\n" + str(fn))

	# Code generation ----------------------------------------------------------

	def target_machine(self) -> llvm.TargetMachine:
		try:
			if self.config.triple:
				target = llvm.Target.from_triple(self.config.triple)
			else:
				target = llvm.Target.from_default_triple()
		except RuntimeError as err:
			raise NativeEngineError(f"unknown target {self.config.triple!r}: {err}") from err
		return target.create_target_machine(
			cpu=self.config.cpu,
			features=self.config.features,
			opt=self.config.opt_level,
		)

	def emit_object(self, text: str, out_path: Optional[Path] = None) -> bytes:
		tm = self.target_machine()
		obj = tm.emit_object(self._parse(text, tm))
		if out_path is not None:
			out_path.parent.mkdir(parents=True, exist_ok=True)
			out_path.write_bytes(obj)
		return obj

	def emit_assembly(self, text: str, out_path: Optional[Path] = None) -> str:
		tm = self.target_machine()
		asm = tm.emit_assembly(self._parse(text, tm))
		if out_path is not None:
			out_path.parent.mkdir(parents=True, exist_ok=True)
			out_path.write_text(asm, encoding="utf-8")
		return asm

	def _parse(self, text: str, tm: llvm.TargetMachine) -> llvm.ModuleRef:
		try:
			mod = llvm.parse_assembly(text, context=llvm.create_context())
			mod.verify()
		except RuntimeError as err:
			raise NativeEngineError(f"module rejected by LLVM: {err}") from err
		mod.triple = tm.triple
		mod.data_layout = str(tm.target_data)
		logger.debug("codegen for %s (opt=%d)", tm.triple, self.config.opt_level)
		return mod


def _reasons(err: RuntimeError) -> List[str]:
	lines = [line.strip() for line in str(err).splitlines()]
	return [line for line in lines if line] or ["LLVM rejected the module"]
