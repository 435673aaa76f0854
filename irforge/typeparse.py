# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Parse LLVM-style type expressions into registry types.

    parse_type(registry, ctx, "i32 (i32, i32)")
    parse_type(registry, ctx, "<{i8, [4 x i16]}>")

The grammar lives next to this module (`types.lark`) and is parsed with a
LALR lark parser. Every accepted expression is built through `TypeRegistry`,
so the usual width/length/context checks apply and the result is interned.
`TypeRegistry.render` produces text this parser accepts.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Tuple

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedInput

from irforge.arena import ContextId, TypeId
from irforge.errors import TypeSyntaxError
from irforge.types import TypeRegistry

_GRAMMAR_PATH = Path(__file__).with_name("types.lark")
_GRAMMAR_SRC = _GRAMMAR_PATH.read_text()

_PARSER = Lark(
	_GRAMMAR_SRC,
	parser="lalr",
	start="start",
	maybe_placeholders=False,
)

_FLOAT_BITS = {"half": 16, "float": 32, "double": 64}


def parse_type(registry: TypeRegistry, ctx: ContextId, text: str) -> TypeId:
	try:
		tree = _PARSER.parse(text)
	except UnexpectedInput as exc:
		raise TypeSyntaxError(f"invalid type expression {text!r}: {exc}") from exc
	return _build_type(registry, ctx, tree.children[0])


def _name(tree: Tree) -> str:
	return str(tree.data)


def _build_type(registry: TypeRegistry, ctx: ContextId, tree: Tree) -> TypeId:
	atom, *suffixes = tree.children
	ty = _build_atom(registry, ctx, atom)
	for suffix in suffixes:
		params, var_arg = _build_params(registry, ctx, suffix)
		ty = registry.get_function_signature(ty, params, is_var_arg=var_arg)
	return ty


def _build_atom(registry: TypeRegistry, ctx: ContextId, tree: Tree) -> TypeId:
	kind = _name(tree)
	if kind == "int_type":
		return registry.get_integer(ctx, int(tree.children[0][1:]))
	if kind == "float_type":
		return registry.get_floating(ctx, _FLOAT_BITS[str(tree.children[0])])
	if kind == "void_type":
		return registry.get_void(ctx)
	if kind == "array_type":
		length_tok, elem_tree = tree.children
		return registry.get_array(_build_type(registry, ctx, elem_tree), int(length_tok))
	if kind in ("struct_type", "packed_struct_type"):
		fields: List[TypeId] = []
		for child in tree.children:
			fields.extend(_build_type(registry, ctx, t) for t in child.children)
		return registry.get_struct(ctx, fields, packed=(kind == "packed_struct_type"))
	raise TypeSyntaxError(f"unexpected type node {kind!r}")


def _build_params(registry: TypeRegistry, ctx: ContextId, tree: Tree) -> Tuple[List[TypeId], bool]:
	params: List[TypeId] = []
	var_arg = False
	for plist in tree.children:
		for child in plist.children:
			if isinstance(child, Token) and child.type == "VARARG":
				var_arg = True
			else:
				params.append(_build_type(registry, ctx, child))
	return params, var_arg
