# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Attribute values and their storage at function / return / parameter indices.
"""

from __future__ import annotations

import pytest

from irforge.attributes import Attribute, quote
from irforge.enums import AttributeIndex, AttributeKind
from irforge.errors import IndexOutOfRange, InvalidAttribute, UnknownNativeEnum


@pytest.fixture
def fn(forge, ctx, i32):
	sig = forge.types.get_function_signature(i32, [i32])
	return forge.values.declare_function(ctx, "f", sig)


def test_attribute_constructors():
	assert Attribute.enum(AttributeKind.NO_UNWIND).render() == "nounwind"
	assert Attribute.enum(AttributeKind.ALIGN, 16).render() == "align 16"
	assert Attribute.enum(AttributeKind.DEREFERENCEABLE, 8).render() == "dereferenceable(8)"
	assert Attribute.string("target-cpu", "x86-64").render() == '"target-cpu"="x86-64"'
	assert Attribute.string("flag").render() == '"flag"'
	with pytest.raises(InvalidAttribute):
		Attribute.enum(AttributeKind.ALIGN)
	with pytest.raises(InvalidAttribute):
		Attribute.enum(AttributeKind.NO_UNWIND, 1)
	with pytest.raises(InvalidAttribute):
		Attribute.string("")
	with pytest.raises(UnknownNativeEnum):
		Attribute.enum(9999)


def test_quote_escapes_specials():
	assert quote('a"b\\c') == '"a\\22b\\5Cc"'
	assert quote("\n") == '"\\0A"'


def test_add_get_remove(forge, fn):
	fe = forge.functions
	fn_index = AttributeIndex.FUNCTION
	assert fe.attribute_count(fn, fn_index) == 0
	fe.add_attribute(fn, fn_index, Attribute.enum(AttributeKind.NO_UNWIND))
	fe.add_attribute(fn, fn_index, Attribute.string("frame-pointer", "all"))
	assert fe.attribute_count(fn, fn_index) == 2
	assert fe.get_attribute(fn, fn_index, AttributeKind.NO_UNWIND) == Attribute.enum(AttributeKind.NO_UNWIND)
	assert fe.get_attribute(fn, fn_index, int(AttributeKind.NO_UNWIND)) is not None
	assert fe.get_attribute(fn, fn_index, "frame-pointer").value == "all"
	assert fe.get_attribute(fn, fn_index, AttributeKind.COLD) is None

	fe.remove_attribute(fn, fn_index, "frame-pointer")
	assert [a.render() for a in fe.get_attributes(fn, fn_index)] == ["nounwind"]


def test_remove_absent_attribute_is_a_noop(forge, fn):
	fe = forge.functions
	seen = []
	fe.on_mutation(seen.append)
	fe.remove_attribute(fn, AttributeIndex.RETURN, AttributeKind.NON_NULL)
	fe.remove_attribute(fn, AttributeIndex.FUNCTION, "missing")
	assert fe.attribute_count(fn, AttributeIndex.RETURN) == 0
	assert seen == []


def test_adding_same_key_replaces(forge, fn):
	fe = forge.functions
	idx = AttributeIndex.parameter(0)
	fe.add_attribute(fn, idx, Attribute.enum(AttributeKind.DEREFERENCEABLE, 4))
	fe.add_attribute(fn, idx, Attribute.enum(AttributeKind.DEREFERENCEABLE, 8))
	assert fe.attribute_count(fn, idx) == 1
	assert fe.get_attribute(fn, idx, AttributeKind.DEREFERENCEABLE).value == 8


def test_parameter_index_bounds(forge, fn):
	with pytest.raises(IndexOutOfRange):
		forge.functions.add_attribute(fn, AttributeIndex.parameter(1), Attribute.enum(AttributeKind.NO_UNDEF))
	with pytest.raises(IndexOutOfRange):
		AttributeIndex.parameter(-1)


def test_attributes_render_in_the_header(forge, fn):
	fe = forge.functions
	fe.add_attribute(fn, AttributeIndex.RETURN, Attribute.enum(AttributeKind.NO_UNDEF))
	fe.add_attribute(fn, AttributeIndex.parameter(0), Attribute.enum(AttributeKind.SIGN_EXT))
	fe.add_target_dependent_attribute(fn, "target-features", "+sse2")
	text = forge.render(forge.values.module_of(fn))
	assert 'declare noundef i32 @"f"(i32 signext %' in text
	assert '"target-features"="+sse2"' in text


def test_attribute_index_str():
	assert str(AttributeIndex.FUNCTION) == "function"
	assert str(AttributeIndex.RETURN) == "return"
	assert str(AttributeIndex.parameter(2)) == "parameter 2"
	assert AttributeIndex.parameter(2).value == 3


def test_target_dependent_attribute_needs_a_key(forge, fn):
	"""An empty quoted key is not an LLVM attribute, so it is refused up front."""
	fe = forge.functions
	with pytest.raises(InvalidAttribute):
		fe.add_target_dependent_attribute(fn, "", "x")
	with pytest.raises(InvalidAttribute):
		fe.add_target_dependent_attribute(fn, "target-cpu", None)
	fe.add_target_dependent_attribute(fn, "no-trapping-math")
	assert fe.get_attribute(fn, AttributeIndex.FUNCTION, "no-trapping-math").render() == '"no-trapping-math"'
	assert fe.attribute_count(fn, AttributeIndex.FUNCTION) == 1
