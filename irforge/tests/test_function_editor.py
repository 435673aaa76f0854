# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
FunctionEditor: blocks, parameters, conventions, personality, GC, deletion.
"""

from __future__ import annotations

import pytest

from irforge.enums import AttributeIndex, AttributeKind, CallConvention
from irforge.errors import (
	DuplicateName,
	ForeignOperand,
	FunctionInUse,
	IndexOutOfRange,
	InvalidAttribute,
	NoPersonalityFunction,
	NotAParameter,
	UnsupportedConvention,
	UseAfterFree,
)
from irforge.instructions import BinaryOp


@pytest.fixture
def fn(forge, ctx, i32):
	sig = forge.types.get_function_signature(i32, [i32, i32])
	return forge.values.declare_function(ctx, "f", sig)


def test_parameter_count_matches_parameters(forge, fn):
	fe = forge.functions
	assert len(fe.parameters(fn)) == fe.parameter_count(fn) == 2
	assert fe.get_parameter(fn, 1) == fe.parameters(fn)[1]
	with pytest.raises(IndexOutOfRange):
		fe.get_parameter(fn, fe.parameter_count(fn))
	with pytest.raises(IndexOutOfRange):
		fe.get_parameter(fn, -1)


def test_append_basic_block_names(forge, fn):
	fe = forge.functions
	entry = fe.append_basic_block(fn, "entry")
	again = fe.append_basic_block(fn, "entry")
	assert fe.blocks(fn) == [entry, again]
	assert fe.block_name(entry) == "entry"
	assert fe.block_name(again) != "entry"
	assert fe.function_of(again) == fn
	assert not fe.is_terminated(entry)
	assert fe.instructions(entry) == []


def test_set_parameter_alignment(forge, ctx, fn):
	fe = forge.functions
	p0 = fe.get_parameter(fn, 0)
	fe.set_parameter_alignment(p0, 8)
	attr = fe.get_attribute(fn, AttributeIndex.parameter(0), AttributeKind.ALIGN)
	assert attr is not None and attr.value == 8
	with pytest.raises(InvalidAttribute):
		fe.set_parameter_alignment(p0, 3)
	with pytest.raises(NotAParameter):
		fe.set_parameter_alignment(forge.values.const_int(forge.types.get_integer(ctx, 32), 1), 4)
	with pytest.raises(NotAParameter):
		fe.set_parameter_alignment(fn, 4)
	with pytest.raises(NotAParameter):
		fe.set_parameter_alignment(fe.append_basic_block(fn, "entry"), 4)
	with pytest.raises(NotAParameter):
		fe.set_parameter_alignment(forge.values.module_of(fn), 4)


def test_call_convention_round_trip(forge, fn):
	fe = forge.functions
	assert fe.call_convention(fn) is CallConvention.C
	fe.set_call_convention(fn, CallConvention.FAST)
	assert fe.call_convention(fn) is CallConvention.FAST
	fe.set_call_convention(fn, 9)
	assert fe.call_convention(fn) is CallConvention.COLD
	fe.set_call_convention(fn, CallConvention.HHVM)
	assert fe.call_convention(fn) is CallConvention.HHVM
	assert "cc 81" in forge.render(forge.values.module_of(fn))
	with pytest.raises(UnsupportedConvention):
		fe.set_call_convention(fn, 1234)
	assert fe.call_convention(fn) is CallConvention.HHVM


def test_personality_function(forge, ctx, i32, fn):
	fe = forge.functions
	with pytest.raises(NoPersonalityFunction):
		fe.personality_function(fn)
	assert not fe.has_personality_function(fn)

	pers_sig = forge.types.get_function_signature(i32, [], is_var_arg=True)
	pers = forge.values.declare_function(ctx, "__gxx_personality_v0", pers_sig)
	fe.set_personality_function(fn, pers)
	assert fe.has_personality_function(fn)
	assert fe.personality_function(fn) == pers

	elsewhere = forge.values.create_module(ctx, "elsewhere")
	foreign = forge.values.declare_function(ctx, "p2", pers_sig, module=elsewhere)
	with pytest.raises(ForeignOperand):
		fe.set_personality_function(fn, foreign)
	assert fe.personality_function(fn) == pers

	fe.set_personality_function(fn, None)
	assert not fe.has_personality_function(fn)


def test_garbage_collector(forge, fn):
	fe = forge.functions
	assert fe.garbage_collector(fn) == ""
	fe.set_garbage_collector(fn, "shadow-stack")
	assert fe.garbage_collector(fn) == "shadow-stack"
	assert 'gc "shadow-stack"' in forge.render(forge.values.module_of(fn))
	fe.set_garbage_collector(fn, "")
	assert "gc " not in forge.render(forge.values.module_of(fn))


def test_delete_function_releases_handles(forge, ctx, i32, fn):
	fe = forge.functions
	entry = fe.append_basic_block(fn, "entry")
	a, b = fe.parameters(fn)
	add = forge.instructions.binary(entry, BinaryOp.ADD, a, b)
	module = forge.values.module_of(fn)

	fe.delete_function(fn)
	for handle in (fn, entry, a, b, add):
		assert not forge.arena.is_live(handle)
	with pytest.raises(UseAfterFree):
		fe.parameter_count(fn)
	assert forge.values.functions(module) == []
	assert '@"f"' not in forge.render(module)
	# The name stays reserved.
	with pytest.raises(DuplicateName):
		forge.values.declare_function(ctx, "f", forge.types.get_function_signature(i32, [i32, i32]))


def test_delete_refused_while_called(forge, ctx, i32):
	fe = forge.functions
	sig = forge.types.get_function_signature(i32, [])
	callee = forge.values.declare_function(ctx, "callee", sig)
	caller = forge.values.declare_function(ctx, "caller", sig)
	entry = fe.append_basic_block(caller, "entry")
	forge.instructions.ret(entry, forge.instructions.call(entry, callee))

	with pytest.raises(FunctionInUse):
		fe.delete_function(callee)
	assert forge.arena.is_live(callee)

	fe.delete_function(caller)
	fe.delete_function(callee)
	assert not forge.arena.is_live(callee)


def test_delete_refused_while_personality(forge, ctx, i32, fn):
	fe = forge.functions
	pers = forge.values.declare_function(ctx, "pers", forge.types.get_function_signature(i32, []))
	fe.set_personality_function(fn, pers)
	with pytest.raises(FunctionInUse):
		fe.delete_function(pers)
	fe.set_personality_function(fn, None)
	fe.delete_function(pers)


def test_recursive_function_can_be_deleted(forge, ctx, i32):
	fe = forge.functions
	sig = forge.types.get_function_signature(i32, [])
	rec = forge.values.declare_function(ctx, "rec", sig)
	entry = fe.append_basic_block(rec, "entry")
	forge.instructions.ret(entry, forge.instructions.call(entry, rec))
	fe.delete_function(rec)
	assert not forge.arena.is_live(rec)


def test_is_intrinsic(forge, ctx, i32, fn):
	assert not forge.functions.is_intrinsic(fn)
	sig = forge.types.get_function_signature(forge.types.get_void(ctx), [])
	trap = forge.values.declare_function(ctx, "llvm.trap", sig)
	assert forge.functions.is_intrinsic(trap)


def test_mutations_notify_listeners(forge, fn):
	seen = []
	forge.functions.on_mutation(seen.append)
	forge.functions.append_basic_block(fn, "entry")
	forge.functions.set_garbage_collector(fn, "statepoint-example")
	forge.functions.add_target_dependent_attribute(fn, "target-cpu", "generic")
	assert seen == [fn, fn, fn]
