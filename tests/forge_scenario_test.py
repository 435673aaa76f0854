from __future__ import annotations

import pytest

from irforge import (
	Attribute,
	AttributeIndex,
	AttributeKind,
	BinaryOp,
	CallConvention,
	Forge,
	IntPredicate,
	VerificationStatus,
	VerifierFailureAction,
)
from irforge.errors import IndexOutOfRange, UseAfterFree

RETURN_STATUS = VerifierFailureAction.RETURN_STATUS


def test_add_function_scenario() -> None:
	forge = Forge()
	ctx = forge.create_context("scenario")
	i32 = forge.types.get_integer(ctx, 32)
	sig = forge.types.get_function_signature(i32, [i32, i32])
	f = forge.values.declare_function(ctx, "f", sig)
	assert forge.functions.parameter_count(f) == 2
	with pytest.raises(IndexOutOfRange):
		forge.functions.get_parameter(f, 2)

	# An empty entry block is not a valid body.
	entry = forge.functions.append_basic_block(f, "entry")
	result = forge.verifier.verify(f, RETURN_STATUS)
	assert result.status is VerificationStatus.INVALID
	assert result.reasons

	a, b = forge.functions.parameters(f)
	forge.instructions.ret(entry, forge.instructions.binary(entry, BinaryOp.ADD, a, b))
	assert forge.verifier.verify(f, RETURN_STATUS).status is VerificationStatus.VERIFIED

	forge.destroy_context(ctx)
	for handle in (i32, sig, f, entry, a, b):
		with pytest.raises(UseAfterFree):
			forge.arena.resolve(handle)


def test_module_with_control_flow_compiles(tmp_path) -> None:
	"""max(a, b) through a branch, a fastcc helper and attributes, down to an object file."""
	forge = Forge()
	with forge.context("maxmod") as ctx:
		i32 = forge.types.get_integer(ctx, 32)
		fe, ib = forge.functions, forge.instructions

		helper = forge.values.declare_function(ctx, "pick", forge.parse_type(ctx, "i32 (i1, i32, i32)"))
		fe.set_call_convention(helper, CallConvention.FAST)
		fe.add_attribute(helper, AttributeIndex.FUNCTION, Attribute.enum(AttributeKind.NO_UNWIND))
		body = fe.append_basic_block(helper, "entry")
		cond, x, y = fe.parameters(helper)
		ib.ret(body, ib.select(body, cond, x, y))

		top = forge.values.declare_function(ctx, "max", forge.types.get_function_signature(i32, [i32, i32]))
		fe.add_target_dependent_attribute(top, "frame-pointer", "all")
		entry = fe.append_basic_block(top, "entry")
		bigger = fe.append_basic_block(top, "bigger")
		smaller = fe.append_basic_block(top, "smaller")
		a, b = fe.parameters(top)
		ib.cond_br(entry, ib.icmp(entry, IntPredicate.SGT, a, b), bigger, smaller)
		ib.ret(bigger, a)
		ib.ret(smaller, ib.call(smaller, helper, [forge.values.const_int(forge.types.get_integer(ctx, 1), 0), a, b]))

		module = forge.values.module_of(top)
		assert forge.verifier.verify_module(module, RETURN_STATUS)
		text = forge.render(module)
		assert "fastcc" in text
		assert '"frame-pointer"="all"' in text

		out = tmp_path / "max.o"
		obj = forge.emit_object(module, out)
		assert obj and out.read_bytes() == obj
		assert "max" in forge.emit_assembly(module)
