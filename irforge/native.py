# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Native construction objects (llvmlite.ir side of the engine boundary).

`NativeFunction` is an `ir.Function` whose header is rendered from irforge's
own attribute store instead of llvmlite's per-position attribute sets. The
llvmlite sets only accept a fixed list of names, while irforge needs string
attributes, integer payloads, a GC strategy and a personality function in one
header. The body (blocks and instructions) is still rendered by llvmlite.

Header layout (LLVM LangRef order):
  define|declare [linkage] [cconv] [ret attrs] <ret type> @name(<args>)
    [fn attrs] [gc "name"] [personality <ty> @fn]
"""

from __future__ import annotations

from typing import Dict, List, Optional

from llvmlite import ir  # type: ignore

from irforge.attributes import Attribute, AttributeKey, quote
from irforge.enums import AttributeIndex


class NativeFunction(ir.Function):
	def __init__(self, module: ir.Module, ftype: ir.FunctionType, name: str) -> None:
		super().__init__(module, ftype, name=name)
		# AttributeIndex.value -> ordered key -> Attribute
		self.attribute_sets: Dict[int, Dict[AttributeKey, Attribute]] = {}
		self.gc_strategy: str = ""
		self.personality_fn: Optional[ir.Function] = None

	def attributes_at(self, index: AttributeIndex) -> Dict[AttributeKey, Attribute]:
		return self.attribute_sets.setdefault(index.value, {})

	def _rendered(self, index: AttributeIndex) -> List[str]:
		return [attr.render() for attr in self.attribute_sets.get(index.value, {}).values()]

	def descr_prototype(self, buf: List[str]) -> None:
		state = "define" if self.blocks else "declare"
		ret = " ".join(self._rendered(AttributeIndex.RETURN) + [str(self.ftype.return_type)])
		args = []
		for i, arg in enumerate(self.args):
			parts = [str(arg.type)] + self._rendered(AttributeIndex.parameter(i)) + [arg.get_reference()]
			args.append(" ".join(parts))
		if self.ftype.var_arg:
			args.append("...")
		head = " ".join(part for part in (state, self.linkage, self.calling_convention, ret) if part)
		tail = self._rendered(AttributeIndex.FUNCTION)
		if self.gc_strategy:
			tail.append(f"gc {quote(self.gc_strategy)}")
		if self.personality_fn is not None:
			tail.append(f"personality {self.personality_fn.type} {self.personality_fn.get_reference()}")
		suffix = (" " + " ".join(tail)) if tail else ""
		buf.append(f"{head} {self.get_reference()}({', '.join(args)}){suffix}\n")
