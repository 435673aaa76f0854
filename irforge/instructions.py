# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
InstructionBuilder: appends typed instructions to the end of a block.

Operands must be constants or values of the function being built (its
parameters and instructions); branch targets must be blocks of that function.
Each builder call type-checks its operands first and only then emits the
native instruction, so a rejected call leaves the block untouched.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from llvmlite import ir  # type: ignore

from irforge.arena import BlockId, FunctionId, InstructionId, TypeId, ValueId
from irforge.errors import BlockTerminated, CrossContextValue, ForeignOperand, IndexOutOfRange, TypeMismatch
from irforge.function import FunctionEditor
from irforge.types import TypeKind
from irforge.values import ValueKind

logger = logging.getLogger(__name__)


class InstructionKind(Enum):
	RET = "ret"
	BR = "br"
	COND_BR = "cond_br"
	SELECT = "select"
	BINARY = "binary"
	ICMP = "icmp"
	CALL = "call"
	UNREACHABLE = "unreachable"

	@property
	def is_terminator(self) -> bool:
		return self in _TERMINATORS


_TERMINATORS = frozenset({InstructionKind.RET, InstructionKind.BR, InstructionKind.COND_BR, InstructionKind.UNREACHABLE})


class BinaryOp(Enum):
	"""Binary operators; the value is the llvmlite builder method."""

	ADD = "add"
	SUB = "sub"
	MUL = "mul"
	SDIV = "sdiv"
	UDIV = "udiv"
	SREM = "srem"
	UREM = "urem"
	AND = "and_"
	OR = "or_"
	XOR = "xor"
	SHL = "shl"
	LSHR = "lshr"
	ASHR = "ashr"
	FADD = "fadd"
	FSUB = "fsub"
	FMUL = "fmul"
	FDIV = "fdiv"
	FREM = "frem"

	@property
	def is_floating(self) -> bool:
		return self.name.startswith("F")


class IntPredicate(Enum):
	EQ = "eq"
	NE = "ne"
	UGT = "ugt"
	UGE = "uge"
	ULT = "ult"
	ULE = "ule"
	SGT = "sgt"
	SGE = "sge"
	SLT = "slt"
	SLE = "sle"


# predicate -> (signed, llvmlite comparison operator)
_ICMP: Dict[IntPredicate, Tuple[bool, str]] = {
	IntPredicate.EQ: (True, "=="),
	IntPredicate.NE: (True, "!="),
	IntPredicate.UGT: (False, ">"),
	IntPredicate.UGE: (False, ">="),
	IntPredicate.ULT: (False, "<"),
	IntPredicate.ULE: (False, "<="),
	IntPredicate.SGT: (True, ">"),
	IntPredicate.SGE: (True, ">="),
	IntPredicate.SLT: (True, "<"),
	IntPredicate.SLE: (True, "<="),
}


class InstructionBuilder:
	def __init__(self, editor: FunctionEditor) -> None:
		self.editor = editor
		self.values = editor.values
		self.types = editor.values.types
		self.arena = editor.arena

	# Terminators --------------------------------------------------------------

	def ret(self, block: BlockId, value: Optional[ValueId] = None) -> InstructionId:
		fn = self._open(block)
		expected = self.types.return_type(self.values.type_of(fn))
		if self.types.kind_of(expected) is TypeKind.VOID:
			if value is not None:
				raise TypeMismatch("void function cannot return a value")
			return self._emit(block, InstructionKind.RET, lambda b: b.ret_void())
		if value is None:
			raise TypeMismatch(f"function must return {self.types.render(expected)}")
		self._operand(fn, value, expected=expected, what="return value")
		native = self.arena.resolve(value)
		return self._emit(block, InstructionKind.RET, lambda b: b.ret(native), operands=(value,))

	def br(self, block: BlockId, target: BlockId) -> InstructionId:
		fn = self._open(block)
		dest = self._target(fn, target)
		return self._emit(block, InstructionKind.BR, lambda b: b.branch(dest), targets=(target,))

	def cond_br(self, block: BlockId, cond: ValueId, then: BlockId, otherwise: BlockId) -> InstructionId:
		fn = self._open(block)
		self._operand(fn, cond, expected=self.types.get_integer(fn.context, 1), what="branch condition")
		dest_then = self._target(fn, then)
		dest_else = self._target(fn, otherwise)
		native_cond = self.arena.resolve(cond)
		return self._emit(
			block,
			InstructionKind.COND_BR,
			lambda b: b.cbranch(native_cond, dest_then, dest_else),
			operands=(cond,),
			targets=(then, otherwise),
		)

	def unreachable(self, block: BlockId) -> InstructionId:
		self._open(block)
		return self._emit(block, InstructionKind.UNREACHABLE, lambda b: b.unreachable())

	# Values -------------------------------------------------------------------

	def select(self, block: BlockId, cond: ValueId, lhs: ValueId, rhs: ValueId, name: str = "") -> InstructionId:
		fn = self._open(block)
		self._operand(fn, cond, expected=self.types.get_integer(fn.context, 1), what="select condition")
		ty = self._operand(fn, lhs, what="select operand")
		self._operand(fn, rhs, expected=ty, what="select operand")
		c, a, b_ = (self.arena.resolve(v) for v in (cond, lhs, rhs))
		return self._emit(
			block,
			InstructionKind.SELECT,
			lambda b: b.select(c, a, b_, name=name),
			result=ty,
			operands=(cond, lhs, rhs),
		)

	def binary(self, block: BlockId, op: BinaryOp, lhs: ValueId, rhs: ValueId, name: str = "") -> InstructionId:
		fn = self._open(block)
		ty = self._operand(fn, lhs, what=f"{op.name.lower()} operand")
		self._operand(fn, rhs, expected=ty, what=f"{op.name.lower()} operand")
		want = TypeKind.FLOATING if op.is_floating else TypeKind.INTEGER
		if self.types.kind_of(ty) is not want:
			raise TypeMismatch(f"{op.name.lower()} needs {want.value} operands, got {self.types.render(ty)}")
		a, b_ = self.arena.resolve(lhs), self.arena.resolve(rhs)
		method = op.value
		return self._emit(
			block,
			InstructionKind.BINARY,
			lambda b: getattr(b, method)(a, b_, name=name),
			result=ty,
			operands=(lhs, rhs),
			op=op,
		)

	def icmp(self, block: BlockId, pred: IntPredicate, lhs: ValueId, rhs: ValueId, name: str = "") -> InstructionId:
		fn = self._open(block)
		ty = self._operand(fn, lhs, what="icmp operand")
		self._operand(fn, rhs, expected=ty, what="icmp operand")
		if not self.types.is_integer(ty):
			raise TypeMismatch(f"icmp needs integer operands, got {self.types.render(ty)}")
		signed, cmpop = _ICMP[pred]
		a, b_ = self.arena.resolve(lhs), self.arena.resolve(rhs)

		def build(b: ir.IRBuilder) -> Any:
			if signed:
				return b.icmp_signed(cmpop, a, b_, name=name)
			return b.icmp_unsigned(cmpop, a, b_, name=name)

		return self._emit(
			block,
			InstructionKind.ICMP,
			build,
			result=self.types.get_integer(fn.context, 1),
			operands=(lhs, rhs),
			op=pred,
		)

	def call(self, block: BlockId, callee: FunctionId, args: Sequence[ValueId] = (), name: str = "") -> InstructionId:
		"""Call `callee` (same module) with `args`; uses the callee's convention."""
		fn = self._open(block)
		self.arena.ensure_same_context(fn.context, [callee], error=CrossContextValue, what="callee")
		if self.values.kind_of(callee) is not ValueKind.FUNCTION:
			raise TypeMismatch("call target must be a function")
		if self.values.module_of(callee) != self.values.module_of(fn):
			raise ForeignOperand(f"callee {self.editor.name_of(callee)!r} lives in another module")
		signature = self.values.type_of(callee)
		params = self.types.param_types(signature)
		args = tuple(args)
		if len(args) < len(params) or (len(args) > len(params) and not self.types.is_var_arg(signature)):
			raise IndexOutOfRange(f"call to {self.editor.name_of(callee)!r} expects {len(params)} arguments, got {len(args)}")
		for i, arg in enumerate(args):
			self._operand(fn, arg, expected=params[i] if i < len(params) else None, what=f"argument {i}")
		native_callee = self.arena.resolve(callee)
		native_args = [self.arena.resolve(a) for a in args]
		cconv = native_callee.calling_convention or None
		ret = self.types.return_type(signature)
		inst = self._emit(
			block,
			InstructionKind.CALL,
			lambda b: b.call(native_callee, native_args, name=name if ret != self._void(fn) else "", cconv=cconv),
			result=ret,
			operands=args,
			callee=callee,
		)
		self.editor.add_reference(fn, callee)
		return inst

	# Accessors ----------------------------------------------------------------

	def kind_of(self, inst: InstructionId) -> InstructionKind:
		return self._meta(inst)["opcode"]

	def operands(self, inst: InstructionId) -> List[ValueId]:
		return list(self._meta(inst)["operands"])

	def targets(self, inst: InstructionId) -> List[BlockId]:
		return list(self._meta(inst)["targets"])

	def block_of(self, inst: InstructionId) -> BlockId:
		return self._meta(inst)["block"]

	def callee_of(self, inst: InstructionId) -> Optional[FunctionId]:
		return self._meta(inst).get("callee")

	# Internals ----------------------------------------------------------------

	def _meta(self, inst: InstructionId) -> Dict[str, Any]:
		meta = self.arena.meta(inst)
		if meta.get("kind") is not ValueKind.INSTRUCTION:
			raise TypeMismatch("expected an instruction")
		return meta

	def _void(self, fn: FunctionId) -> TypeId:
		return self.types.get_void(fn.context)

	def _open(self, block: BlockId) -> FunctionId:
		native = self.arena.resolve(block)
		if native.is_terminated:
			raise BlockTerminated(f"block {native.name!r} already ends in a terminator")
		return self.editor.function_of(block)

	def _operand(self, fn: FunctionId, value: ValueId, expected: Optional[TypeId] = None, what: str = "operand") -> TypeId:
		self.arena.ensure_same_context(fn.context, [value], error=CrossContextValue, what="value")
		meta = self.arena.meta(value)
		kind = meta.get("kind")
		if not isinstance(kind, ValueKind):
			raise TypeMismatch(f"{what} is not a value")
		if kind is ValueKind.FUNCTION:
			raise TypeMismatch(f"{what} cannot be a function")
		if kind is not ValueKind.CONSTANT and meta["function"] != fn:
			raise ForeignOperand(f"{what} belongs to another function")
		ty = meta["type"]
		if self.types.kind_of(ty) is TypeKind.VOID:
			raise TypeMismatch(f"{what} has no value (void)")
		if expected is not None and ty != expected:
			raise TypeMismatch(f"{what} has type {self.types.render(ty)}, expected {self.types.render(expected)}")
		return ty

	def _target(self, fn: FunctionId, target: BlockId) -> Any:
		self.arena.ensure_same_context(fn.context, [target], error=CrossContextValue, what="block")
		if self.editor.function_of(target) != fn:
			raise ForeignOperand("branch target belongs to another function")
		return self.arena.resolve(target)

	def _emit(
		self,
		block: BlockId,
		opcode: InstructionKind,
		build: Any,
		result: Optional[TypeId] = None,
		operands: Tuple[ValueId, ...] = (),
		targets: Tuple[BlockId, ...] = (),
		**extra: Any,
	) -> InstructionId:
		fn = self.editor.function_of(block)
		native = build(ir.IRBuilder(self.arena.resolve(block)))
		inst = self.arena.tag(
			native,
			fn.context,
			InstructionId,
			kind=ValueKind.INSTRUCTION,
			opcode=opcode,
			type=result if result is not None else self._void(fn),
			function=fn,
			block=block,
			operands=tuple(operands),
			targets=tuple(targets),
			**extra,
		)
		self.arena.meta(block)["instructions"].append(inst)
		logger.debug("emitted %s in %s", opcode.value, self.editor.name_of(fn))
		self.editor.touch(fn)
		return inst
