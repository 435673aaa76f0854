# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Forge: one arena plus every component wired to it.

    forge = Forge()
    with forge.context("demo") as ctx:
        i32 = forge.types.get_integer(ctx, 32)
        sig = forge.types.get_function_signature(i32, [i32, i32])
        fn = forge.values.declare_function(ctx, "add", sig)
        entry = forge.functions.append_basic_block(fn, "entry")
        a, b = forge.functions.parameters(fn)
        forge.instructions.ret(entry, forge.instructions.binary(entry, BinaryOp.ADD, a, b))
        assert forge.verifier.verify(fn)

There is no global context: every entry point takes the context (or a handle
that carries it) explicitly.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from irforge.arena import ContextId, HandleArena, ModuleId, SharedContext, TypeId
from irforge.config import EngineConfig
from irforge.engine import NativeEngine
from irforge.function import FunctionEditor
from irforge.instructions import InstructionBuilder
from irforge.typeparse import parse_type
from irforge.types import TypeRegistry
from irforge.values import ValueBuilder
from irforge.verifier import Verifier

logger = logging.getLogger(__name__)


class Forge:
	def __init__(self, config: EngineConfig | None = None) -> None:
		self.config = config or EngineConfig()
		self.arena = HandleArena()
		self.types = TypeRegistry(self.arena)
		self.values = ValueBuilder(self.types, self.config)
		self.functions = FunctionEditor(self.values)
		self.instructions = InstructionBuilder(self.functions)
		self._engine: Optional[NativeEngine] = None
		self._verifier: Optional[Verifier] = None

	@property
	def engine(self) -> NativeEngine:
		# Created lazily: building IR never needs the native target.
		if self._engine is None:
			self._engine = NativeEngine(self.config)
		return self._engine

	@property
	def verifier(self) -> Verifier:
		if self._verifier is None:
			self._verifier = Verifier(self.instructions, self.engine)
		return self._verifier

	def create_context(self, label: str = "") -> ContextId:
		return self.arena.create_context(label)

	def destroy_context(self, ctx: ContextId) -> None:
		self.arena.destroy_context(ctx)

	@contextmanager
	def context(self, label: str = "") -> Iterator[ContextId]:
		"""Context that is destroyed when the block exits."""
		ctx = self.create_context(label)
		try:
			yield ctx
		finally:
			if self.arena.is_alive(ctx):
				self.destroy_context(ctx)

	def share(self, ctx: ContextId) -> SharedContext:
		return SharedContext(self.arena, ctx)

	def parse_type(self, ctx: ContextId, text: str) -> TypeId:
		return parse_type(self.types, ctx, text)

	def render(self, module: ModuleId) -> str:
		return self.values.render_module(module)

	def emit_object(self, module: ModuleId, out_path: Optional[Path] = None) -> bytes:
		return self.engine.emit_object(self.render(module), out_path)

	def emit_assembly(self, module: ModuleId, out_path: Optional[Path] = None) -> str:
		return self.engine.emit_assembly(self.render(module), out_path)
