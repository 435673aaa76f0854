# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Error kinds raised by irforge.

Every precondition is checked before the native engine is touched, so a raised
error always leaves the IR exactly as it was before the call. Verification
failure is *not* an error: it is reported as a `VerificationResult` value.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class IrError(Exception):
	"""Base class for all irforge failures."""

	message: str

	def __str__(self) -> str:
		return self.message


class UseAfterFree(IrError):
	"""A handle (or its context) was used after being released."""


class ThreadAffinityError(IrError):
	"""A context was touched from a thread that does not own it."""


class InvalidWidth(IrError):
	pass


class InvalidLength(IrError):
	pass


class CrossContext(IrError):
	"""Handles from two different contexts were mixed in one operation."""


class CrossContextType(CrossContext):
	pass


class CrossContextValue(CrossContext):
	pass


class TypeMismatch(IrError):
	pass


class ConstantOutOfRange(TypeMismatch):
	pass


class DuplicateName(IrError):
	pass


class InvalidName(IrError):
	pass


class IndexOutOfRange(IrError):
	pass


class NotAParameter(IrError):
	pass


class UnsupportedConvention(IrError):
	pass


class UnknownNativeEnum(IrError):
	"""The native engine reported an enum value with no entry in our tables."""


class NoPersonalityFunction(IrError):
	pass


class InvalidAttribute(IrError):
	pass


class BlockTerminated(IrError):
	"""An instruction was appended after the block's terminator."""


class ForeignOperand(IrError):
	"""An operand or branch target belongs to another function or module."""


class FunctionInUse(IrError):
	pass


class TypeSyntaxError(IrError):
	pass


class NativeEngineError(IrError):
	"""llvmlite rejected the input handed to it."""


class ConfigError(IrError):
	pass


__all__ = [
	"IrError",
	"UseAfterFree",
	"ThreadAffinityError",
	"InvalidWidth",
	"InvalidLength",
	"CrossContext",
	"CrossContextType",
	"CrossContextValue",
	"TypeMismatch",
	"ConstantOutOfRange",
	"DuplicateName",
	"InvalidName",
	"IndexOutOfRange",
	"NotAParameter",
	"UnsupportedConvention",
	"UnknownNativeEnum",
	"NoPersonalityFunction",
	"InvalidAttribute",
	"BlockTerminated",
	"ForeignOperand",
	"FunctionInUse",
	"TypeSyntaxError",
	"NativeEngineError",
	"ConfigError",
]
