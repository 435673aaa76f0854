# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
TypeRegistry: per-context construction and interning of IR types.

Types are structurally interned per context: asking twice for `[4 x i32]` in
one context yields the same `TypeId`, while the same request in another
context yields a different one. Every constructor refuses component types from
another context (`CrossContextType`) before touching the native engine.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Hashable, List, Sequence, Tuple

from llvmlite import ir  # type: ignore

from irforge.arena import ContextId, HandleArena, TypeId
from irforge.errors import InvalidLength, InvalidWidth, TypeMismatch

# Largest integer width the native engine accepts (IntegerType::MAX_INT_BITS).
MAX_INT_BITS = (1 << 23) - 1
MAX_ARRAY_LENGTH = (1 << 32) - 1

_FLOATING = {16: ir.HalfType, 32: ir.FloatType, 64: ir.DoubleType}


class TypeKind(Enum):
	VOID = "void"
	INTEGER = "integer"
	FLOATING = "floating"
	ARRAY = "array"
	STRUCT = "struct"
	FUNCTION = "function"


class TypeRegistry:
	def __init__(self, arena: HandleArena) -> None:
		self.arena = arena
		self._interned: Dict[ContextId, Dict[Hashable, TypeId]] = {}
		arena.on_destroy(self._forget)

	# Constructors -------------------------------------------------------------

	def get_void(self, ctx: ContextId) -> TypeId:
		return self._intern(ctx, ("void",), lambda: ir.VoidType(), kind=TypeKind.VOID)

	def get_integer(self, ctx: ContextId, bits: int) -> TypeId:
		if isinstance(bits, bool) or not isinstance(bits, int) or not (1 <= bits <= MAX_INT_BITS):
			raise InvalidWidth(f"integer width must be within 1..{MAX_INT_BITS}, got {bits!r}")
		return self._intern(ctx, ("int", bits), lambda: ir.IntType(bits), kind=TypeKind.INTEGER, width=bits)

	def get_floating(self, ctx: ContextId, bits: int) -> TypeId:
		native_cls = _FLOATING.get(bits) if isinstance(bits, int) and not isinstance(bits, bool) else None
		if native_cls is None:
			raise InvalidWidth(f"floating-point width must be one of 16, 32, 64, got {bits!r}")
		return self._intern(ctx, ("float", bits), native_cls, kind=TypeKind.FLOATING, width=bits)

	def get_array(self, element: TypeId, length: int) -> TypeId:
		ctx = self.arena.owner_of(element)
		if isinstance(length, bool) or not isinstance(length, int) or not (0 <= length <= MAX_ARRAY_LENGTH):
			raise InvalidLength(f"array length must be within 0..{MAX_ARRAY_LENGTH}, got {length!r}")
		self._require_sized(element, "array element")
		key = ("array", element.serial, length)
		native_elem = self.native(element)
		return self._intern(
			ctx,
			key,
			lambda: ir.ArrayType(native_elem, length),
			kind=TypeKind.ARRAY,
			element=element,
			length=length,
		)

	def get_struct(self, ctx: ContextId, fields: Sequence[TypeId], packed: bool = False) -> TypeId:
		fields = tuple(fields)
		self.arena.ensure_same_context(ctx, fields)
		for field_ty in fields:
			self._require_sized(field_ty, "struct field")
		key = ("struct", tuple(f.serial for f in fields), bool(packed))
		natives = [self.native(f) for f in fields]
		return self._intern(
			ctx,
			key,
			lambda: ir.LiteralStructType(natives, packed=bool(packed)),
			kind=TypeKind.STRUCT,
			fields=fields,
			packed=bool(packed),
		)

	def get_function_signature(
		self,
		return_type: TypeId,
		params: Sequence[TypeId],
		is_var_arg: bool = False,
	) -> TypeId:
		ctx = self.arena.owner_of(return_type)
		params = tuple(params)
		self.arena.ensure_same_context(ctx, params)
		if self.kind_of(return_type) is TypeKind.FUNCTION:
			raise TypeMismatch("a function cannot return a function type")
		for param in params:
			self._require_sized(param, "function parameter")
		key = ("fn", return_type.serial, tuple(p.serial for p in params), bool(is_var_arg))
		native_ret = self.native(return_type)
		native_params = [self.native(p) for p in params]
		return self._intern(
			ctx,
			key,
			lambda: ir.FunctionType(native_ret, native_params, var_arg=bool(is_var_arg)),
			kind=TypeKind.FUNCTION,
			return_type=return_type,
			params=params,
			var_arg=bool(is_var_arg),
		)

	# Accessors ----------------------------------------------------------------

	def kind_of(self, ty: TypeId) -> TypeKind:
		return self.arena.meta(ty)["kind"]

	def native(self, ty: TypeId) -> ir.Type:
		return self.arena.resolve(ty)

	def render(self, ty: TypeId) -> str:
		"""Textual LLVM spelling, e.g. `[4 x i8]`."""
		return str(self.native(ty))

	def element_type(self, array: TypeId) -> TypeId:
		return self._meta_of(array, TypeKind.ARRAY)["element"]

	def length(self, array: TypeId) -> int:
		return self._meta_of(array, TypeKind.ARRAY)["length"]

	def width(self, ty: TypeId) -> int:
		meta = self.arena.meta(ty)
		if meta["kind"] not in (TypeKind.INTEGER, TypeKind.FLOATING):
			raise TypeMismatch(f"{self.render(ty)} has no bit width")
		return meta["width"]

	def struct_fields(self, struct: TypeId) -> Tuple[TypeId, ...]:
		return self._meta_of(struct, TypeKind.STRUCT)["fields"]

	def is_packed(self, struct: TypeId) -> bool:
		return self._meta_of(struct, TypeKind.STRUCT)["packed"]

	def return_type(self, signature: TypeId) -> TypeId:
		return self._meta_of(signature, TypeKind.FUNCTION)["return_type"]

	def param_types(self, signature: TypeId) -> Tuple[TypeId, ...]:
		return self._meta_of(signature, TypeKind.FUNCTION)["params"]

	def is_var_arg(self, signature: TypeId) -> bool:
		return self._meta_of(signature, TypeKind.FUNCTION)["var_arg"]

	def subtypes(self, ty: TypeId) -> List[TypeId]:
		"""Directly contained types: array element, struct fields, or return + params."""
		meta = self.arena.meta(ty)
		kind = meta["kind"]
		if kind is TypeKind.ARRAY:
			return [meta["element"]]
		if kind is TypeKind.STRUCT:
			return list(meta["fields"])
		if kind is TypeKind.FUNCTION:
			return [meta["return_type"], *meta["params"]]
		return []

	def is_integer(self, ty: TypeId, bits: int | None = None) -> bool:
		meta = self.arena.meta(ty)
		return meta["kind"] is TypeKind.INTEGER and (bits is None or meta["width"] == bits)

	# Internals ----------------------------------------------------------------

	def _intern(self, ctx: ContextId, key: Hashable, make: Any, **meta: Any) -> TypeId:
		self.arena.check(ctx)
		table = self._interned.setdefault(ctx, {})
		existing = table.get(key)
		if existing is not None and self.arena.is_live(existing):
			return existing
		handle = self.arena.tag(make(), ctx, TypeId, **meta)
		table[key] = handle
		return handle

	def _meta_of(self, ty: TypeId, kind: TypeKind) -> Dict[str, Any]:
		meta = self.arena.meta(ty)
		if meta["kind"] is not kind:
			raise TypeMismatch(f"expected {kind.value} type, got {self.render(ty)}")
		return meta

	def _require_sized(self, ty: TypeId, what: str) -> None:
		if self.kind_of(ty) in (TypeKind.VOID, TypeKind.FUNCTION):
			raise TypeMismatch(f"{what} cannot have type {self.render(ty)}")

	def _forget(self, ctx: ContextId) -> None:
		self._interned.pop(ctx, None)
