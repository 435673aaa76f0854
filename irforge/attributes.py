# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Attribute values attached to functions, parameters and return values.

An attribute is either an enum attribute (`AttributeKind`, with an integer
payload for `align`, `alignstack`, `dereferenceable`, ...) or a string
key/value pair. Both flavours render to the textual form the native engine
parses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from irforge.enums import AttributeKind, attribute_is_int_valued, attribute_kind, attribute_name
from irforge.errors import InvalidAttribute

AttributeKey = Union[AttributeKind, str]


@dataclass(frozen=True)
class Attribute:
	kind: AttributeKey
	value: Optional[Union[int, str]] = None

	@classmethod
	def enum(cls, kind: int | AttributeKind, value: int | None = None) -> "Attribute":
		member = attribute_kind(kind)
		if attribute_is_int_valued(member):
			if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
				raise InvalidAttribute(f"attribute '{attribute_name(member)}' needs a positive integer value")
		elif value is not None:
			raise InvalidAttribute(f"attribute '{attribute_name(member)}' takes no value")
		return cls(member, value)

	@classmethod
	def string(cls, key: str, value: str = "") -> "Attribute":
		if not isinstance(key, str) or not isinstance(value, str):
			raise InvalidAttribute("string attributes need a str key and a str value")
		if not key:
			raise InvalidAttribute("string attribute key must not be empty")
		return cls(key, value)

	@property
	def is_enum(self) -> bool:
		return isinstance(self.kind, AttributeKind)

	@property
	def is_string(self) -> bool:
		return not self.is_enum

	def render(self) -> str:
		if isinstance(self.kind, AttributeKind):
			name = attribute_name(self.kind)
			if self.value is None:
				return name
			if self.kind is AttributeKind.ALIGN:
				return f"{name} {self.value}"
			return f"{name}({self.value})"
		if self.value:
			return f"{quote(self.kind)}={quote(str(self.value))}"
		return quote(self.kind)

	def __str__(self) -> str:  # pragma: no cover - trivial repr
		return self.render()


def normalize_key(kind: int | AttributeKey) -> AttributeKey:
	"""Accept an `AttributeKind`, its numeric value or a string key."""
	if isinstance(kind, str):
		return kind
	return attribute_kind(kind)


def quote(text: str) -> str:
	"""Quote `text` as an LLVM string literal (`\\XX` escapes for specials)."""
	out = []
	for byte in text.encode("utf-8"):
		ch = chr(byte)
		if ch in ('"', "\\") or not (0x20 <= byte < 0x7F):
			out.append(f"\\{byte:02X}")
		else:
			out.append(ch)
	return '"' + "".join(out) + '"'
