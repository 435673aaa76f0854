# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Verifier: structural checks plus the native LLVM verifier.

Per-function state machine:

    UNVERIFIED --verify--> VERIFIED
                      \\--> INVALID(reasons)

Any mutation of the function (reported by `FunctionEditor`) moves it back to
UNVERIFIED. Results are plain values and a VERIFIED result is truthy.

Failure actions:
  RETURN_STATUS    return the INVALID result, nothing printed.
  PRINT_MESSAGE    write the reasons to stderr, then return the result.
  PRINT_AND_ABORT  write the reasons to stderr and abort the process.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from irforge.arena import ContextId, FunctionId, ModuleId
from irforge.engine import NativeEngine
from irforge.enums import AttributeIndex, VerifierFailureAction, attribute_name, attribute_placements
from irforge.instructions import InstructionBuilder
from irforge.native import NativeFunction

logger = logging.getLogger(__name__)


class VerificationStatus(Enum):
	UNVERIFIED = "unverified"
	VERIFIED = "verified"
	INVALID = "invalid"


@dataclass(frozen=True)
class VerificationResult:
	status: VerificationStatus
	reasons: Tuple[str, ...] = ()

	def __bool__(self) -> bool:
		return self.status is VerificationStatus.VERIFIED


UNVERIFIED = VerificationResult(VerificationStatus.UNVERIFIED)
VERIFIED = VerificationResult(VerificationStatus.VERIFIED)


class Verifier:
	def __init__(self, instructions: InstructionBuilder, engine: NativeEngine) -> None:
		self.instructions = instructions
		self.editor = instructions.editor
		self.values = instructions.values
		self.arena = instructions.arena
		self.engine = engine
		self._states: Dict[ContextId, Dict[FunctionId, VerificationResult]] = {}
		self.editor.on_mutation(self._reset)
		self.arena.on_destroy(self._forget)

	def state_of(self, fn: FunctionId) -> VerificationResult:
		self.editor.name_of(fn)
		return self._states.get(fn.context, {}).get(fn, UNVERIFIED)

	def verify(self, fn: FunctionId, action: Optional[VerifierFailureAction] = None) -> VerificationResult:
		"""Verify `fn`; `action` defaults to the engine configuration's."""
		name = self.editor.name_of(fn)
		reasons = self._structural(fn)
		if not reasons:
			reasons = self.engine.check_function(self.arena.resolve(fn))
		result = _result(reasons)
		self._states.setdefault(fn.context, {})[fn] = result
		logger.info("verified function %r: %s", name, result.status.value)
		return self._apply(action, f"function {name!r}", result)

	def verify_module(self, module: ModuleId, action: Optional[VerifierFailureAction] = None) -> VerificationResult:
		"""Verify every function of `module`, then the module as a whole."""
		module_name = self.values.module_name(module)
		reasons: List[str] = []
		for fn in self.values.functions(module):
			result = self.verify(fn, VerifierFailureAction.RETURN_STATUS)
			name = self.editor.name_of(fn)
			reasons.extend(f"{name}: {reason}" for reason in result.reasons)
		if not reasons:
			reasons = self.engine.check(self.values.render_module(module))
		result = _result(reasons)
		logger.info("verified module %r: %s", module_name, result.status.value)
		return self._apply(action, f"module {module_name!r}", result)

	# Structural checks --------------------------------------------------------

	def _structural(self, fn: FunctionId) -> List[str]:
		reasons: List[str] = []
		blocks = self.editor.blocks(fn)
		for block in blocks:
			name = self.editor.block_name(block)
			insts = self.editor.instructions(block)
			if not insts:
				reasons.append(f"block {name!r} is empty")
				continue
			for inst in insts[:-1]:
				if self.instructions.kind_of(inst).is_terminator:
					reasons.append(f"block {name!r} has a terminator before its last instruction")
			if not self.instructions.kind_of(insts[-1]).is_terminator:
				reasons.append(f"block {name!r} does not end in a terminator")
			if any(blocks[0] in self.instructions.targets(inst) for inst in insts):
				reasons.append(f"entry block {self.editor.block_name(blocks[0])!r} has a predecessor in {name!r}")
		reasons.extend(self._attribute_reasons(self.arena.resolve(fn)))
		if self.editor.has_personality_function(fn):
			personality = self.editor.personality_function(fn)
			if not self.arena.is_live(personality):
				reasons.append("personality function has been deleted")
			elif self.values.module_of(personality) != self.values.module_of(fn):
				reasons.append("personality function lives in another module")
		return reasons

	@staticmethod
	def _attribute_reasons(native: NativeFunction) -> List[str]:
		reasons = []
		for slot, attrs in native.attribute_sets.items():
			index = AttributeIndex(slot)
			for attr in attrs.values():
				if attr.is_string:
					if not index.is_function:
						reasons.append(f"string attribute {attr.render()} is only valid on the function")
					continue
				if index.placement not in attribute_placements(attr.kind):
					reasons.append(f"attribute '{attribute_name(attr.kind)}' is not valid on the {index}")
		return reasons

	# Failure handling ---------------------------------------------------------

	def _apply(self, action: Optional[VerifierFailureAction], what: str, result: VerificationResult) -> VerificationResult:
		if result:
			return result
		if action is None:
			action = self.engine.config.verifier_action
		if action is VerifierFailureAction.RETURN_STATUS:
			return result
		print(f"irforge: {what} failed verification:", file=sys.stderr)
		for reason in result.reasons:
			print(f"  {reason}", file=sys.stderr)
		if action is VerifierFailureAction.PRINT_AND_ABORT:
			logger.critical("aborting: %s failed verification", what)
			sys.stderr.flush()
			os.abort()
		return result

	def _reset(self, fn: FunctionId) -> None:
		self._states.get(fn.context, {}).pop(fn, None)

	def _forget(self, ctx: ContextId) -> None:
		self._states.pop(ctx, None)


def _result(reasons: List[str]) -> VerificationResult:
	if reasons:
		return VerificationResult(VerificationStatus.INVALID, tuple(reasons))
	return VERIFIED
