# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Enumerations shared with the native engine and their translation tables.

Each table is total and bidirectional: every enum member maps to exactly one
native spelling and every spelling maps back to exactly one member. The tables
are checked for exhaustiveness at import time (`_check_tables`), so a member
added without a native spelling breaks the import rather than surfacing later
as a lookup failure. A native value with no entry raises `UnknownNativeEnum`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import ClassVar, Dict, FrozenSet, Mapping

from irforge.errors import IndexOutOfRange, UnknownNativeEnum, UnsupportedConvention


class CallConvention(Enum):
	"""Calling conventions, valued by their numeric LLVM code."""

	C = 0
	FAST = 8
	COLD = 9
	GHC = 10
	HIPE = 11
	WEBKIT_JS = 12
	ANY_REG = 13
	PRESERVE_MOST = 14
	PRESERVE_ALL = 15
	SWIFT = 16
	CXX_FAST_TLS = 17
	X86_STDCALL = 64
	X86_FASTCALL = 65
	ARM_APCS = 66
	ARM_AAPCS = 67
	ARM_AAPCS_VFP = 68
	MSP430_INTR = 69
	X86_THISCALL = 70
	PTX_KERNEL = 71
	PTX_DEVICE = 72
	SPIR_FUNC = 75
	SPIR_KERNEL = 76
	INTEL_OCL_BI = 77
	X86_64_SYSV = 78
	WIN64 = 79
	X86_VECTORCALL = 80
	HHVM = 81
	HHVM_C = 82
	X86_INTR = 83
	AVR_INTR = 84
	AVR_SIGNAL = 85
	AVR_BUILTIN = 86
	AMDGPU_VS = 87
	AMDGPU_GS = 88
	AMDGPU_PS = 89
	AMDGPU_CS = 90
	AMDGPU_KERNEL = 91
	X86_REGCALL = 92
	AMDGPU_HS = 93
	MSP430_BUILTIN = 94
	AMDGPU_LS = 95
	AMDGPU_ES = 96


# Textual IR spelling for each convention. Conventions whose keyword is gone
# from current LLVM releases use the numeric `cc N` form, which every release
# accepts.
_CALL_CONV_NATIVE: Dict[CallConvention, str] = {
	CallConvention.C: "ccc",
	CallConvention.FAST: "fastcc",
	CallConvention.COLD: "coldcc",
	CallConvention.GHC: "ghccc",
	CallConvention.HIPE: "cc 11",
	CallConvention.WEBKIT_JS: "webkit_jscc",
	CallConvention.ANY_REG: "anyregcc",
	CallConvention.PRESERVE_MOST: "preserve_mostcc",
	CallConvention.PRESERVE_ALL: "preserve_allcc",
	CallConvention.SWIFT: "swiftcc",
	CallConvention.CXX_FAST_TLS: "cxx_fast_tlscc",
	CallConvention.X86_STDCALL: "x86_stdcallcc",
	CallConvention.X86_FASTCALL: "x86_fastcallcc",
	CallConvention.ARM_APCS: "arm_apcscc",
	CallConvention.ARM_AAPCS: "arm_aapcscc",
	CallConvention.ARM_AAPCS_VFP: "arm_aapcs_vfpcc",
	CallConvention.MSP430_INTR: "msp430_intrcc",
	CallConvention.X86_THISCALL: "x86_thiscallcc",
	CallConvention.PTX_KERNEL: "ptx_kernel",
	CallConvention.PTX_DEVICE: "ptx_device",
	CallConvention.SPIR_FUNC: "spir_func",
	CallConvention.SPIR_KERNEL: "spir_kernel",
	CallConvention.INTEL_OCL_BI: "intel_ocl_bicc",
	CallConvention.X86_64_SYSV: "x86_64_sysvcc",
	CallConvention.WIN64: "win64cc",
	CallConvention.X86_VECTORCALL: "x86_vectorcallcc",
	CallConvention.HHVM: "cc 81",
	CallConvention.HHVM_C: "cc 82",
	CallConvention.X86_INTR: "x86_intrcc",
	CallConvention.AVR_INTR: "avr_intrcc",
	CallConvention.AVR_SIGNAL: "avr_signalcc",
	CallConvention.AVR_BUILTIN: "cc 86",
	CallConvention.AMDGPU_VS: "amdgpu_vs",
	CallConvention.AMDGPU_GS: "amdgpu_gs",
	CallConvention.AMDGPU_PS: "amdgpu_ps",
	CallConvention.AMDGPU_CS: "amdgpu_cs",
	CallConvention.AMDGPU_KERNEL: "amdgpu_kernel",
	CallConvention.X86_REGCALL: "x86_regcallcc",
	CallConvention.AMDGPU_HS: "amdgpu_hs",
	CallConvention.MSP430_BUILTIN: "cc 94",
	CallConvention.AMDGPU_LS: "amdgpu_ls",
	CallConvention.AMDGPU_ES: "amdgpu_es",
}
_CALL_CONV_FROM_NATIVE: Dict[str, CallConvention] = {v: k for k, v in _CALL_CONV_NATIVE.items()}
_CC_NUMERIC = re.compile(r"^cc (\d+)$")


def call_convention_from_code(code: int | CallConvention) -> CallConvention:
	"""Map a numeric code (or a member) to a `CallConvention`."""
	if isinstance(code, CallConvention):
		return code
	if isinstance(code, bool) or not isinstance(code, int):
		raise UnsupportedConvention(f"calling convention code must be an int, got {code!r}")
	try:
		return CallConvention(code)
	except ValueError:
		raise UnsupportedConvention(f"calling convention code {code} is not supported") from None


def call_convention_to_native(cc: CallConvention) -> str:
	return _CALL_CONV_NATIVE[cc]


def call_convention_from_native(spelling: str) -> CallConvention:
	"""
	Map the native spelling back to a member.

	llvmlite leaves the calling convention as an empty string for the default
	(C) convention; a numeric `cc N` spelling maps through its code.
	"""
	if spelling == "":
		return CallConvention.C
	cc = _CALL_CONV_FROM_NATIVE.get(spelling)
	if cc is not None:
		return cc
	m = _CC_NUMERIC.match(spelling)
	if m:
		try:
			return CallConvention(int(m.group(1)))
		except ValueError:
			pass
	raise UnknownNativeEnum(f"unknown native calling convention {spelling!r}")


class Placement(Enum):
	FUNCTION = "function"
	PARAMETER = "parameter"
	RETURN = "return"


_FN = frozenset({Placement.FUNCTION})
_PARAM = frozenset({Placement.PARAMETER})
_VALUE = frozenset({Placement.PARAMETER, Placement.RETURN})
_FN_PARAM = frozenset({Placement.FUNCTION, Placement.PARAMETER})


class AttributeKind(IntEnum):
	"""
	Well-known enum attributes.

	The integer values are irforge's own stable numbering; the native engine
	identifies attributes by their textual name (`attribute_name`).
	"""

	ALWAYS_INLINE = 1
	BUILTIN = 2
	COLD = 3
	CONVERGENT = 4
	HOT = 5
	INLINE_HINT = 6
	JUMP_TABLE = 7
	MIN_SIZE = 8
	MUST_PROGRESS = 9
	NAKED = 10
	NO_BUILTIN = 11
	NO_DUPLICATE = 12
	NO_FREE = 13
	NO_IMPLICIT_FLOAT = 14
	NO_INLINE = 15
	NON_LAZY_BIND = 16
	NO_RECURSE = 17
	NO_RED_ZONE = 18
	NO_RETURN = 19
	NO_SYNC = 20
	NO_UNWIND = 21
	OPT_NONE = 22
	OPT_SIZE = 23
	READ_NONE = 24
	READ_ONLY = 25
	WRITE_ONLY = 26
	RETURNS_TWICE = 27
	SAFE_STACK = 28
	SANITIZE_ADDRESS = 29
	SANITIZE_MEMORY = 30
	SANITIZE_THREAD = 31
	SPECULATABLE = 32
	SSP = 33
	SSP_REQ = 34
	SSP_STRONG = 35
	UW_TABLE = 36
	WILL_RETURN = 37
	ALIGN_STACK = 38
	IN_REG = 39
	NEST = 40
	NO_ALIAS = 41
	NO_CAPTURE = 42
	NON_NULL = 43
	RETURNED = 44
	SIGN_EXT = 45
	ZERO_EXT = 46
	NO_UNDEF = 47
	IMM_ARG = 48
	SWIFT_SELF = 49
	SWIFT_ERROR = 50
	ALIGN = 51
	DEREFERENCEABLE = 52
	DEREFERENCEABLE_OR_NULL = 53


@dataclass(frozen=True)
class _AttrInfo:
	name: str
	placements: FrozenSet[Placement]
	int_valued: bool = False


_ATTRIBUTE_INFO: Dict[AttributeKind, _AttrInfo] = {
	AttributeKind.ALWAYS_INLINE: _AttrInfo("alwaysinline", _FN),
	AttributeKind.BUILTIN: _AttrInfo("builtin", _FN),
	AttributeKind.COLD: _AttrInfo("cold", _FN),
	AttributeKind.CONVERGENT: _AttrInfo("convergent", _FN),
	AttributeKind.HOT: _AttrInfo("hot", _FN),
	AttributeKind.INLINE_HINT: _AttrInfo("inlinehint", _FN),
	AttributeKind.JUMP_TABLE: _AttrInfo("jumptable", _FN),
	AttributeKind.MIN_SIZE: _AttrInfo("minsize", _FN),
	AttributeKind.MUST_PROGRESS: _AttrInfo("mustprogress", _FN),
	AttributeKind.NAKED: _AttrInfo("naked", _FN),
	AttributeKind.NO_BUILTIN: _AttrInfo("nobuiltin", _FN),
	AttributeKind.NO_DUPLICATE: _AttrInfo("noduplicate", _FN),
	AttributeKind.NO_FREE: _AttrInfo("nofree", _FN_PARAM),
	AttributeKind.NO_IMPLICIT_FLOAT: _AttrInfo("noimplicitfloat", _FN),
	AttributeKind.NO_INLINE: _AttrInfo("noinline", _FN),
	AttributeKind.NON_LAZY_BIND: _AttrInfo("nonlazybind", _FN),
	AttributeKind.NO_RECURSE: _AttrInfo("norecurse", _FN),
	AttributeKind.NO_RED_ZONE: _AttrInfo("noredzone", _FN),
	AttributeKind.NO_RETURN: _AttrInfo("noreturn", _FN),
	AttributeKind.NO_SYNC: _AttrInfo("nosync", _FN),
	AttributeKind.NO_UNWIND: _AttrInfo("nounwind", _FN),
	AttributeKind.OPT_NONE: _AttrInfo("optnone", _FN),
	AttributeKind.OPT_SIZE: _AttrInfo("optsize", _FN),
	AttributeKind.READ_NONE: _AttrInfo("readnone", _FN_PARAM),
	AttributeKind.READ_ONLY: _AttrInfo("readonly", _FN_PARAM),
	AttributeKind.WRITE_ONLY: _AttrInfo("writeonly", _FN_PARAM),
	AttributeKind.RETURNS_TWICE: _AttrInfo("returns_twice", _FN),
	AttributeKind.SAFE_STACK: _AttrInfo("safestack", _FN),
	AttributeKind.SANITIZE_ADDRESS: _AttrInfo("sanitize_address", _FN),
	AttributeKind.SANITIZE_MEMORY: _AttrInfo("sanitize_memory", _FN),
	AttributeKind.SANITIZE_THREAD: _AttrInfo("sanitize_thread", _FN),
	AttributeKind.SPECULATABLE: _AttrInfo("speculatable", _FN),
	AttributeKind.SSP: _AttrInfo("ssp", _FN),
	AttributeKind.SSP_REQ: _AttrInfo("sspreq", _FN),
	AttributeKind.SSP_STRONG: _AttrInfo("sspstrong", _FN),
	AttributeKind.UW_TABLE: _AttrInfo("uwtable", _FN),
	AttributeKind.WILL_RETURN: _AttrInfo("willreturn", _FN),
	AttributeKind.ALIGN_STACK: _AttrInfo("alignstack", _FN, int_valued=True),
	AttributeKind.IN_REG: _AttrInfo("inreg", _VALUE),
	AttributeKind.NEST: _AttrInfo("nest", _PARAM),
	AttributeKind.NO_ALIAS: _AttrInfo("noalias", _VALUE),
	AttributeKind.NO_CAPTURE: _AttrInfo("nocapture", _PARAM),
	AttributeKind.NON_NULL: _AttrInfo("nonnull", _VALUE),
	AttributeKind.RETURNED: _AttrInfo("returned", _PARAM),
	AttributeKind.SIGN_EXT: _AttrInfo("signext", _VALUE),
	AttributeKind.ZERO_EXT: _AttrInfo("zeroext", _VALUE),
	AttributeKind.NO_UNDEF: _AttrInfo("noundef", _VALUE),
	AttributeKind.IMM_ARG: _AttrInfo("immarg", _PARAM),
	AttributeKind.SWIFT_SELF: _AttrInfo("swiftself", _PARAM),
	AttributeKind.SWIFT_ERROR: _AttrInfo("swifterror", _PARAM),
	AttributeKind.ALIGN: _AttrInfo("align", _VALUE, int_valued=True),
	AttributeKind.DEREFERENCEABLE: _AttrInfo("dereferenceable", _VALUE, int_valued=True),
	AttributeKind.DEREFERENCEABLE_OR_NULL: _AttrInfo("dereferenceable_or_null", _VALUE, int_valued=True),
}
_ATTRIBUTE_FROM_NAME: Dict[str, AttributeKind] = {info.name: kind for kind, info in _ATTRIBUTE_INFO.items()}


def attribute_kind(kind: int | AttributeKind) -> AttributeKind:
	"""Map a numeric kind to its member; unknown kinds raise `UnknownNativeEnum`."""
	if isinstance(kind, AttributeKind):
		return kind
	try:
		return AttributeKind(kind)
	except ValueError:
		raise UnknownNativeEnum(f"unknown attribute kind {kind!r}") from None


def attribute_name(kind: AttributeKind) -> str:
	return _ATTRIBUTE_INFO[kind].name


def attribute_from_name(name: str) -> AttributeKind:
	kind = _ATTRIBUTE_FROM_NAME.get(name)
	if kind is None:
		raise UnknownNativeEnum(f"unknown native attribute {name!r}")
	return kind


def attribute_placements(kind: AttributeKind) -> FrozenSet[Placement]:
	return _ATTRIBUTE_INFO[kind].placements


def attribute_is_int_valued(kind: AttributeKind) -> bool:
	return _ATTRIBUTE_INFO[kind].int_valued


# Native encoding of the attribute slots: 0 is the return value, i + 1 is
# parameter i, and the all-ones 32-bit value is the function itself.
_RETURN_SLOT = 0
_FUNCTION_SLOT = 0xFFFFFFFF


@dataclass(frozen=True)
class AttributeIndex:
	"""Attachment point of an attribute: `RETURN`, `FUNCTION` or `parameter(i)`."""

	value: int

	RETURN: ClassVar["AttributeIndex"]
	FUNCTION: ClassVar["AttributeIndex"]

	@classmethod
	def parameter(cls, index: int) -> "AttributeIndex":
		if isinstance(index, bool) or not isinstance(index, int) or index < 0:
			raise IndexOutOfRange(f"parameter index must be a non-negative int, got {index!r}")
		if index + 1 >= _FUNCTION_SLOT:
			raise IndexOutOfRange(f"parameter index {index} is out of range")
		return cls(index + 1)

	@property
	def is_return(self) -> bool:
		return self.value == _RETURN_SLOT

	@property
	def is_function(self) -> bool:
		return self.value == _FUNCTION_SLOT

	@property
	def parameter_index(self) -> int | None:
		if self.is_return or self.is_function:
			return None
		return self.value - 1

	@property
	def placement(self) -> Placement:
		if self.is_function:
			return Placement.FUNCTION
		if self.is_return:
			return Placement.RETURN
		return Placement.PARAMETER

	def __str__(self) -> str:
		if self.is_function:
			return "function"
		if self.is_return:
			return "return"
		return f"parameter {self.parameter_index}"


AttributeIndex.RETURN = AttributeIndex(_RETURN_SLOT)
AttributeIndex.FUNCTION = AttributeIndex(_FUNCTION_SLOT)


class VerifierFailureAction(Enum):
	"""What the verifier does on failure; values are the native action codes."""

	PRINT_AND_ABORT = 0
	PRINT_MESSAGE = 1
	RETURN_STATUS = 2


_VERIFIER_ACTION_NAMES: Dict[VerifierFailureAction, str] = {
	VerifierFailureAction.PRINT_AND_ABORT: "print-and-abort",
	VerifierFailureAction.PRINT_MESSAGE: "print-message",
	VerifierFailureAction.RETURN_STATUS: "return-status",
}
_VERIFIER_ACTION_FROM_NAME: Dict[str, VerifierFailureAction] = {v: k for k, v in _VERIFIER_ACTION_NAMES.items()}


def verifier_action_name(action: VerifierFailureAction) -> str:
	return _VERIFIER_ACTION_NAMES[action]


def verifier_action_from_name(name: str) -> VerifierFailureAction:
	action = _VERIFIER_ACTION_FROM_NAME.get(name)
	if action is None:
		raise UnknownNativeEnum(f"unknown verifier action {name!r}")
	return action


def _check_tables() -> None:
	"""Every member must have exactly one spelling and spellings must be unique."""
	tables: list[tuple[type[Enum], Mapping[Enum, object]]] = [
		(CallConvention, _CALL_CONV_NATIVE),
		(AttributeKind, _ATTRIBUTE_INFO),
		(VerifierFailureAction, _VERIFIER_ACTION_NAMES),
	]
	for enum_cls, table in tables:
		missing = [m.name for m in enum_cls if m not in table]
		if missing:
			raise RuntimeError(f"{enum_cls.__name__}: no native spelling for {', '.join(missing)}")
	if len(_CALL_CONV_FROM_NATIVE) != len(_CALL_CONV_NATIVE):
		raise RuntimeError("CallConvention: duplicate native spellings")
	if len(_ATTRIBUTE_FROM_NAME) != len(_ATTRIBUTE_INFO):
		raise RuntimeError("AttributeKind: duplicate native names")


_check_tables()
