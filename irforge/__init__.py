# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
irforge: a typed, handle-safe builder and verifier for LLVM IR.

Layers (bottom up):
  arena         HandleArena, contexts, thread affinity
  types         TypeRegistry (+ typeparse for textual type expressions)
  values        ValueBuilder: constants, modules, function declarations
  function      FunctionEditor: blocks, parameters, attributes, deletion
  instructions  InstructionBuilder
  verifier      Verifier (structural + native checks)
  engine        NativeEngine (llvmlite.binding: checking and codegen)

`Forge` wires all of them to one arena.
"""

from .arena import BlockId, ContextId, FunctionId, HandleArena, InstructionId, ModuleId, SharedContext, TypeId, ValueId
from .attributes import Attribute
from .config import EngineConfig, dump_config, load_config
from .enums import AttributeIndex, AttributeKind, CallConvention, VerifierFailureAction
from .errors import IrError
from .forge import Forge
from .instructions import BinaryOp, InstructionKind, IntPredicate
from .verifier import VerificationResult, VerificationStatus

__all__ = [
	"Attribute",
	"AttributeIndex",
	"AttributeKind",
	"BinaryOp",
	"BlockId",
	"CallConvention",
	"ContextId",
	"EngineConfig",
	"Forge",
	"FunctionId",
	"HandleArena",
	"InstructionId",
	"InstructionKind",
	"IntPredicate",
	"IrError",
	"ModuleId",
	"SharedContext",
	"TypeId",
	"ValueId",
	"VerificationResult",
	"VerificationStatus",
	"VerifierFailureAction",
	"dump_config",
	"load_config",
]
