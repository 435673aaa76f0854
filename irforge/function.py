# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
FunctionEditor: blocks, parameters, conventions, attributes and deletion.

All mutations go through the editor so it can notify its listeners (the
verifier drops its cached state for the function). Every precondition is
checked before the native function is touched.

References between functions (calls and personality functions) are counted in
each callee's `users` table; `delete_function` refuses while another live
function still refers to the target.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Callable, List, Optional

from irforge.arena import BlockId, FunctionId, HandleArena, InstructionId, ValueId
from irforge.attributes import Attribute, AttributeKey, normalize_key
from irforge.enums import (
	AttributeIndex,
	AttributeKind,
	CallConvention,
	call_convention_from_code,
	call_convention_from_native,
	call_convention_to_native,
)
from irforge.errors import (
	CrossContextValue,
	ForeignOperand,
	FunctionInUse,
	IndexOutOfRange,
	InvalidAttribute,
	NoPersonalityFunction,
	NotAParameter,
	TypeMismatch,
)
from irforge.native import NativeFunction
from irforge.values import ValueBuilder, ValueKind

logger = logging.getLogger(__name__)

MutationListener = Callable[[FunctionId], None]


class FunctionEditor:
	def __init__(self, values: ValueBuilder) -> None:
		self.values = values
		self.arena: HandleArena = values.arena
		self._listeners: List[MutationListener] = []

	def on_mutation(self, listener: MutationListener) -> None:
		self._listeners.append(listener)

	def touch(self, fn: FunctionId) -> None:
		"""Tell listeners that `fn` changed."""
		for listener in self._listeners:
			listener(fn)

	# Blocks -------------------------------------------------------------------

	def append_basic_block(self, fn: FunctionId, name: str = "") -> BlockId:
		"""Append an empty block; a taken name gets a numeric suffix."""
		native = self._native(fn)
		block_native = native.append_basic_block(name=name)
		block = self.arena.tag(block_native, fn.context, BlockId, function=fn, instructions=[])
		self.arena.meta(fn)["blocks"].append(block)
		logger.debug("appended block %r to %s", block_native.name, native.name)
		self.touch(fn)
		return block

	def blocks(self, fn: FunctionId) -> List[BlockId]:
		return list(self._meta(fn)["blocks"])

	def block_name(self, block: BlockId) -> str:
		return self.arena.resolve(block).name

	def function_of(self, block: BlockId) -> FunctionId:
		return self.arena.meta(block)["function"]

	def is_terminated(self, block: BlockId) -> bool:
		return bool(self.arena.resolve(block).is_terminated)

	def instructions(self, block: BlockId) -> List[InstructionId]:
		return list(self.arena.meta(block)["instructions"])

	# Parameters ---------------------------------------------------------------

	def get_parameter(self, fn: FunctionId, index: int) -> ValueId:
		params = self._meta(fn)["params"]
		if isinstance(index, bool) or not isinstance(index, int) or not (0 <= index < len(params)):
			raise IndexOutOfRange(f"parameter index {index!r} out of range for {len(params)} parameters")
		return params[index]

	def parameter_count(self, fn: FunctionId) -> int:
		return len(self._meta(fn)["params"])

	def parameters(self, fn: FunctionId) -> List[ValueId]:
		return list(self._meta(fn)["params"])

	def set_parameter_alignment(self, param: ValueId, align: int) -> None:
		meta = self.arena.meta(param)
		kind = meta.get("kind")
		if kind is not ValueKind.PARAMETER:
			raise NotAParameter(f"value is a {getattr(kind, 'value', 'handle')}, not a parameter")
		if isinstance(align, bool) or not isinstance(align, int) or align <= 0 or align & (align - 1):
			raise InvalidAttribute(f"alignment must be a positive power of two, got {align!r}")
		fn = meta["function"]
		attr = Attribute.enum(AttributeKind.ALIGN, align)
		self._native(fn).attributes_at(AttributeIndex.parameter(meta["index"]))[attr.kind] = attr
		self.touch(fn)

	# Calling convention, personality and GC -----------------------------------

	def call_convention(self, fn: FunctionId) -> CallConvention:
		return call_convention_from_native(self._native(fn).calling_convention)

	def set_call_convention(self, fn: FunctionId, cc: int | CallConvention) -> None:
		member = call_convention_from_code(cc)
		native = self._native(fn)
		native.calling_convention = "" if member is CallConvention.C else call_convention_to_native(member)
		self.touch(fn)

	def has_personality_function(self, fn: FunctionId) -> bool:
		return self._meta(fn).get("personality") is not None

	def personality_function(self, fn: FunctionId) -> FunctionId:
		personality = self._meta(fn).get("personality")
		if personality is None:
			raise NoPersonalityFunction(f"function {self._meta(fn)['name']!r} has no personality function")
		return personality

	def set_personality_function(self, fn: FunctionId, personality: Optional[FunctionId]) -> None:
		"""Set (or clear, with None) the exception-handling personality of `fn`."""
		meta = self._meta(fn)
		if personality is not None:
			self.arena.ensure_same_context(fn.context, [personality], error=CrossContextValue, what="function")
			other = self._meta(personality)
			if other["module"] != meta["module"]:
				raise ForeignOperand(f"personality {other['name']!r} lives in another module")
		previous = meta.get("personality")
		if previous is not None:
			self.drop_reference(fn, previous)
		meta["personality"] = personality
		native = self._native(fn)
		native.personality_fn = None
		if personality is not None:
			self.add_reference(fn, personality)
			native.personality_fn = self.arena.resolve(personality)
		self.touch(fn)

	def garbage_collector(self, fn: FunctionId) -> str:
		return self._native(fn).gc_strategy

	def set_garbage_collector(self, fn: FunctionId, name: str) -> None:
		if not isinstance(name, str):
			raise TypeMismatch(f"garbage collector name must be a string, got {name!r}")
		self._native(fn).gc_strategy = name
		self.touch(fn)

	# Attributes ---------------------------------------------------------------

	def add_attribute(self, fn: FunctionId, index: AttributeIndex, attr: Attribute) -> None:
		"""Attach `attr` at `index`, replacing an attribute with the same key."""
		if not isinstance(attr, Attribute):
			raise InvalidAttribute(f"expected an Attribute, got {attr!r}")
		self._check_index(fn, index)
		self._native(fn).attributes_at(index)[attr.kind] = attr
		self.touch(fn)

	def add_target_dependent_attribute(self, fn: FunctionId, name: str, value: str = "") -> None:
		self.add_attribute(fn, AttributeIndex.FUNCTION, Attribute.string(name, value))

	def get_attributes(self, fn: FunctionId, index: AttributeIndex) -> List[Attribute]:
		self._check_index(fn, index)
		return list(self._native(fn).attribute_sets.get(index.value, {}).values())

	def attribute_count(self, fn: FunctionId, index: AttributeIndex) -> int:
		return len(self.get_attributes(fn, index))

	def get_attribute(self, fn: FunctionId, index: AttributeIndex, kind: int | AttributeKey) -> Optional[Attribute]:
		self._check_index(fn, index)
		return self._native(fn).attribute_sets.get(index.value, {}).get(normalize_key(kind))

	def remove_attribute(self, fn: FunctionId, index: AttributeIndex, kind: int | AttributeKey) -> None:
		self._check_index(fn, index)
		attrs = self._native(fn).attribute_sets.get(index.value)
		key = normalize_key(kind)
		if attrs is None or key not in attrs:
			return
		del attrs[key]
		self.touch(fn)

	# Deletion -----------------------------------------------------------------

	def delete_function(self, fn: FunctionId) -> None:
		"""
		Remove `fn` from its module and release every handle it owns.

		The name stays reserved in the module.
		"""
		meta = self._meta(fn)
		users = [user for user, count in meta["users"].items() if count and user != fn and self.arena.is_live(user)]
		if users:
			names = ", ".join(sorted(self.arena.meta(u)["name"] for u in users))
			raise FunctionInUse(f"function {meta['name']!r} is still used by {names}")

		for callee in list(meta["callees"]):
			if callee != fn and self.arena.is_live(callee):
				self.arena.meta(callee)["users"].pop(fn, None)
		self.touch(fn)
		module = meta["module"]
		native_module = self.arena.resolve(module)
		del native_module.globals[meta["name"]]
		self.arena.meta(module)["functions"].remove(fn)
		for block in meta["blocks"]:
			for inst in self.arena.meta(block)["instructions"]:
				self.arena.release(inst)
			self.arena.release(block)
		for param in meta["params"]:
			self.arena.release(param)
		self.arena.release(fn)
		logger.debug("deleted function %r", meta["name"])

	# Misc ---------------------------------------------------------------------

	def is_intrinsic(self, fn: FunctionId) -> bool:
		return self._meta(fn)["name"].startswith("llvm.")

	def name_of(self, fn: FunctionId) -> str:
		return self._meta(fn)["name"]

	def add_reference(self, user: FunctionId, callee: FunctionId) -> None:
		"""Record that `user` refers to `callee` (call or personality)."""
		self._meta(callee)["users"][user] += 1
		self._meta(user)["callees"][callee] += 1

	def drop_reference(self, user: FunctionId, callee: FunctionId) -> None:
		users: Counter = self._meta(callee)["users"]
		callees: Counter = self._meta(user)["callees"]
		for table, key in ((users, user), (callees, callee)):
			table[key] -= 1
			if table[key] <= 0:
				del table[key]

	# Internals ----------------------------------------------------------------

	def _meta(self, fn: FunctionId) -> dict:
		meta = self.arena.meta(fn)
		if meta.get("kind") is not ValueKind.FUNCTION:
			raise TypeMismatch(f"expected a function, got a {getattr(meta.get('kind'), 'value', 'handle')}")
		return meta

	def _native(self, fn: FunctionId) -> NativeFunction:
		self._meta(fn)
		return self.arena.resolve(fn)

	def _check_index(self, fn: FunctionId, index: AttributeIndex) -> None:
		if not isinstance(index, AttributeIndex):
			raise IndexOutOfRange(f"expected an AttributeIndex, got {index!r}")
		param = index.parameter_index
		if param is not None and param >= self.parameter_count(fn):
			raise IndexOutOfRange(f"{index} out of range for {self.parameter_count(fn)} parameters")
