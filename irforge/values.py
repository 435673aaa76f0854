# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
ValueBuilder: constants, modules and function declarations.

Every value carries exactly one `TypeId` and belongs to exactly one context.
Composite constants are checked element by element against their declared
type before anything native is built, so a failing call leaves no trace.

Modules:
  Each context lazily gets a default module (`default_module`); callers that
  need several compilation units create them explicitly with `create_module`.
  Function names are unique per module. Names of deleted functions stay
  reserved, matching the native engine, which never forgets a global name.
"""

from __future__ import annotations

import logging
from collections import Counter
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Set

from llvmlite import ir  # type: ignore

from irforge.arena import ContextId, FunctionId, HandleArena, ModuleId, TypeId, ValueId
from irforge.config import EngineConfig
from irforge.errors import (
	ConstantOutOfRange,
	CrossContextValue,
	DuplicateName,
	InvalidName,
	TypeMismatch,
)
from irforge.native import NativeFunction
from irforge.types import TypeKind, TypeRegistry

logger = logging.getLogger(__name__)


class ValueKind(Enum):
	CONSTANT = "constant"
	FUNCTION = "function"
	PARAMETER = "parameter"
	INSTRUCTION = "instruction"


class ValueBuilder:
	def __init__(self, types: TypeRegistry, config: EngineConfig | None = None) -> None:
		self.types = types
		self.arena: HandleArena = types.arena
		self.config = config or EngineConfig()
		self._default_modules: Dict[ContextId, ModuleId] = {}
		self.arena.on_destroy(self._forget)

	# Constants ----------------------------------------------------------------

	def const_int(self, ty: TypeId, value: int) -> ValueId:
		if not self.types.is_integer(ty):
			raise TypeMismatch(f"const_int needs an integer type, got {self.types.render(ty)}")
		if isinstance(value, bool):
			value = int(value)
		if not isinstance(value, int):
			raise TypeMismatch(f"const_int needs an int value, got {value!r}")
		bits = self.types.width(ty)
		if not (-(1 << (bits - 1)) <= value < (1 << bits)):
			raise ConstantOutOfRange(f"{value} does not fit in i{bits}")
		return self._constant(ty, ir.Constant(self.types.native(ty), value))

	def const_zero(self, ty: TypeId) -> ValueId:
		self._require_first_class(ty)
		return self._constant(ty, ir.Constant(self.types.native(ty), None))

	def const_undef(self, ty: TypeId) -> ValueId:
		self._require_first_class(ty)
		return self._constant(ty, ir.Constant(self.types.native(ty), ir.Undefined))

	def const_array(self, element: TypeId, values: Sequence[ValueId]) -> ValueId:
		"""Constant array of `element`; every value must have exactly that type."""
		ctx = self.arena.owner_of(element)
		values = tuple(values)
		self.arena.ensure_same_context(ctx, values, error=CrossContextValue, what="value")
		for i, value in enumerate(values):
			self._require_constant(value)
			got = self.type_of(value)
			if got != element:
				raise TypeMismatch(
					f"array element {i} has type {self.types.render(got)}, expected {self.types.render(element)}"
				)
		array_ty = self.types.get_array(element, len(values))
		native = ir.Constant(self.types.native(array_ty), [self.arena.resolve(v) for v in values])
		return self._constant(array_ty, native)

	def const_struct(self, ctx: ContextId, values: Sequence[ValueId], packed: bool = False) -> ValueId:
		values = tuple(values)
		self.arena.ensure_same_context(ctx, values, error=CrossContextValue, what="value")
		for value in values:
			self._require_constant(value)
		struct_ty = self.types.get_struct(ctx, [self.type_of(v) for v in values], packed=packed)
		native = ir.Constant(self.types.native(struct_ty), [self.arena.resolve(v) for v in values])
		return self._constant(struct_ty, native)

	def const_string(self, ctx: ContextId, content: bytes | str, null_terminate: bool = True) -> ValueId:
		"""
		Array-of-i8 constant holding `content`.

		The array length is `len(content)`, plus one when `null_terminate` adds
		the trailing NUL. `str` content is encoded as UTF-8 first.
		"""
		data = bytearray(content.encode("utf-8") if isinstance(content, str) else content)
		if null_terminate:
			data.append(0)
		array_ty = self.types.get_array(self.types.get_integer(ctx, 8), len(data))
		return self._constant(array_ty, ir.Constant(self.types.native(array_ty), data))

	# Modules and functions ----------------------------------------------------

	def create_module(self, ctx: ContextId, name: str) -> ModuleId:
		native = ir.Module(name=name)
		if self.config.triple:
			native.triple = self.config.triple
		if self.config.data_layout:
			native.data_layout = self.config.data_layout
		module = self.arena.tag(native, ctx, ModuleId, name=name, names=set(), functions=[])
		logger.debug("created module %r in %s", name, ctx)
		return module

	def default_module(self, ctx: ContextId) -> ModuleId:
		module = self._default_modules.get(ctx)
		if module is None or not self.arena.is_live(module):
			module = self.create_module(ctx, self.arena.label(ctx) or "module")
			self._default_modules[ctx] = module
		return module

	def declare_function(
		self,
		ctx: ContextId,
		name: str,
		signature: TypeId,
		module: Optional[ModuleId] = None,
	) -> FunctionId:
		"""
		Declare `name` with `signature` in `module` (default: the context's module).

		Parameters are created here, once; their count and types never change.
		"""
		if not isinstance(name, str) or not name:
			raise InvalidName(f"function name must be a non-empty string, got {name!r}")
		self.arena.ensure_same_context(ctx, [signature])
		if self.types.kind_of(signature) is not TypeKind.FUNCTION:
			raise TypeMismatch(f"declare_function needs a function type, got {self.types.render(signature)}")
		if module is None:
			module = self.default_module(ctx)
		else:
			self.arena.ensure_same_context(ctx, [module], error=CrossContextValue, what="module")
		module_meta = self.arena.meta(module)
		names: Set[str] = module_meta["names"]
		if name in names:
			raise DuplicateName(f"function {name!r} already exists in module {module_meta['name']!r}")

		native = NativeFunction(self.arena.resolve(module), self.types.native(signature), name)
		names.add(name)
		fn = self.arena.tag(
			native,
			ctx,
			FunctionId,
			kind=ValueKind.FUNCTION,
			type=signature,
			name=name,
			module=module,
			blocks=[],
			users=Counter(),
			callees=Counter(),
		)
		param_types = self.types.param_types(signature)
		params = tuple(
			self.arena.tag(arg, ctx, ValueId, kind=ValueKind.PARAMETER, type=ty, function=fn, index=i)
			for i, (arg, ty) in enumerate(zip(native.args, param_types))
		)
		self.arena.meta(fn)["params"] = params
		module_meta["functions"].append(fn)
		logger.debug("declared function %r (%s)", name, self.types.render(signature))
		return fn

	def functions(self, module: ModuleId) -> List[FunctionId]:
		return list(self.arena.meta(module)["functions"])

	def get_function(self, module: ModuleId, name: str) -> Optional[FunctionId]:
		for fn in self.arena.meta(module)["functions"]:
			if self.arena.meta(fn)["name"] == name:
				return fn
		return None

	def module_of(self, fn: FunctionId) -> ModuleId:
		return self.arena.meta(fn)["module"]

	def module_name(self, module: ModuleId) -> str:
		return self.arena.meta(module)["name"]

	def render_module(self, module: ModuleId) -> str:
		"""Textual IR of the whole module."""
		return str(self.arena.resolve(module))

	# Accessors ----------------------------------------------------------------

	def type_of(self, value: ValueId) -> TypeId:
		return self.arena.meta(value)["type"]

	def kind_of(self, value: ValueId) -> ValueKind:
		return self.arena.meta(value)["kind"]

	def native(self, value: ValueId) -> Any:
		return self.arena.resolve(value)

	# Internals ----------------------------------------------------------------

	def _constant(self, ty: TypeId, native: ir.Constant) -> ValueId:
		return self.arena.tag(native, ty.context, ValueId, kind=ValueKind.CONSTANT, type=ty)

	def _require_constant(self, value: ValueId) -> None:
		if self.kind_of(value) is not ValueKind.CONSTANT:
			raise TypeMismatch(f"composite constants need constant elements, got a {self.kind_of(value).value}")

	def _require_first_class(self, ty: TypeId) -> None:
		if self.types.kind_of(ty) in (TypeKind.VOID, TypeKind.FUNCTION):
			raise TypeMismatch(f"no constant of type {self.types.render(ty)}")

	def _forget(self, ctx: ContextId) -> None:
		self._default_modules.pop(ctx, None)
