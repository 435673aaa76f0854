# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
HandleArena: the single authority over native handles.

Every native llvmlite object that leaves irforge is wrapped in a small frozen
handle (`TypeId`, `ValueId`, `FunctionId`, ...) that records the context it was
allocated in. The arena keeps the handle -> native mapping and refuses to hand
out the native object once the handle or its context has been released, so a
stale handle fails with `UseAfterFree` instead of reaching freed state.

Thread affinity:
  A context belongs to the thread that created it. Any access from another
  thread raises `ThreadAffinityError`. A context can be moved between threads
  with `detach` (owner gives it up) and `adopt` (new owner takes it), and
  `SharedContext` wraps that dance in a lock for callers that really need
  several threads to take turns on one context.
"""

from __future__ import annotations

import itertools
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, List, NoReturn, Optional, Set, Type, TypeVar

from irforge.errors import CrossContext, CrossContextType, ThreadAffinityError, UseAfterFree

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContextId:
	serial: int

	def __str__(self) -> str:  # pragma: no cover - trivial repr
		return f"ctx#{self.serial}"


@dataclass(frozen=True)
class Handle:
	"""Opaque reference to a native object owned by `context`."""

	context: ContextId
	serial: int


@dataclass(frozen=True)
class TypeId(Handle):
	pass


@dataclass(frozen=True)
class ValueId(Handle):
	pass


@dataclass(frozen=True)
class FunctionId(ValueId):
	pass


@dataclass(frozen=True)
class InstructionId(ValueId):
	pass


@dataclass(frozen=True)
class BlockId(Handle):
	pass


@dataclass(frozen=True)
class ModuleId(Handle):
	pass


H = TypeVar("H", bound=Handle)


@dataclass
class _Slot:
	native: Any
	handle: Handle
	meta: Dict[str, Any]


@dataclass
class _ContextState:
	label: str
	owner_thread: Optional[int]
	serials: Set[int] = field(default_factory=set)


class HandleArena:
	"""
	Owns every handle and the contexts they belong to.

	Components register destroy hooks to drop their own per-context tables when
	a context goes away; hooks run synchronously inside `destroy_context`.
	"""

	def __init__(self) -> None:
		self._counter = itertools.count(1)
		self._contexts: Dict[ContextId, _ContextState] = {}
		self._destroyed: Set[ContextId] = set()
		self._slots: Dict[int, _Slot] = {}
		self._destroy_hooks: List[Callable[[ContextId], None]] = []

	# Contexts -----------------------------------------------------------------

	def create_context(self, label: str = "") -> ContextId:
		ctx = ContextId(next(self._counter))
		self._contexts[ctx] = _ContextState(label=label, owner_thread=threading.get_ident())
		logger.debug("created context %s (%s)", ctx, label or "unlabelled")
		return ctx

	def destroy_context(self, ctx: ContextId) -> None:
		"""
		Release `ctx` and every handle tagged with it.

		Irrevocable: the context id is remembered as destroyed so later use of
		it, or of any handle allocated in it, raises `UseAfterFree`.
		"""
		state = self._state(ctx)
		for serial in state.serials:
			self._slots.pop(serial, None)
		del self._contexts[ctx]
		self._destroyed.add(ctx)
		for hook in self._destroy_hooks:
			hook(ctx)
		logger.debug("destroyed context %s (%d handles released)", ctx, len(state.serials))

	def on_destroy(self, hook: Callable[[ContextId], None]) -> None:
		self._destroy_hooks.append(hook)

	def check(self, ctx: ContextId) -> None:
		"""Raise unless `ctx` is alive and owned by the calling thread."""
		self._state(ctx)

	def is_alive(self, ctx: ContextId) -> bool:
		return ctx in self._contexts

	def label(self, ctx: ContextId) -> str:
		return self._state(ctx).label

	def live_count(self, ctx: ContextId) -> int:
		return len(self._state(ctx).serials)

	def detach(self, ctx: ContextId) -> None:
		"""Give up ownership of `ctx` so another thread may `adopt` it."""
		state = self._state(ctx)
		state.owner_thread = None

	def adopt(self, ctx: ContextId) -> None:
		"""Take ownership of a detached context for the calling thread."""
		state = self._contexts.get(ctx)
		if state is None:
			self._raise_dead(ctx)
		me = threading.get_ident()
		if state.owner_thread is not None and state.owner_thread != me:
			raise ThreadAffinityError(f"context {ctx} is owned by another thread; detach it first")
		state.owner_thread = me

	# Handles ------------------------------------------------------------------

	def tag(self, native: Any, ctx: ContextId, handle_cls: Type[H], **meta: Any) -> H:
		"""Wrap `native` in a fresh handle of `handle_cls` owned by `ctx`."""
		state = self._state(ctx)
		handle = handle_cls(context=ctx, serial=next(self._counter))
		self._slots[handle.serial] = _Slot(native=native, handle=handle, meta=dict(meta))
		state.serials.add(handle.serial)
		return handle

	def resolve(self, handle: Handle) -> Any:
		return self._slot(handle).native

	def meta(self, handle: Handle) -> Dict[str, Any]:
		return self._slot(handle).meta

	def owner_of(self, handle: Handle) -> ContextId:
		return self._slot(handle).handle.context

	def is_live(self, handle: Handle) -> bool:
		slot = self._slots.get(handle.serial)
		return slot is not None and slot.handle == handle

	def release(self, handle: Handle) -> None:
		"""Invalidate a single handle ahead of its context."""
		slot = self._slot(handle)
		del self._slots[handle.serial]
		self._contexts[slot.handle.context].serials.discard(handle.serial)

	def ensure_same_context(
		self,
		ctx: ContextId,
		handles: Iterable[Handle],
		error: Type[CrossContext] = CrossContextType,
		what: str = "type",
	) -> None:
		"""Raise `error` unless every handle is live and owned by `ctx`."""
		for handle in handles:
			owner = self.owner_of(handle)
			if owner != ctx:
				raise error(f"{what} from context {owner} cannot be used in context {ctx}")

	# Internals ----------------------------------------------------------------

	def _state(self, ctx: ContextId) -> _ContextState:
		state = self._contexts.get(ctx)
		if state is None:
			self._raise_dead(ctx)
		self._check_thread(ctx, state)
		return state

	def _slot(self, handle: Handle) -> _Slot:
		state = self._contexts.get(handle.context)
		if state is None:
			self._raise_dead(handle.context)
		self._check_thread(handle.context, state)
		slot = self._slots.get(handle.serial)
		if slot is None or slot.handle != handle:
			raise UseAfterFree(f"{type(handle).__name__} #{handle.serial} has been released")
		return slot

	def _raise_dead(self, ctx: ContextId) -> NoReturn:
		if ctx in self._destroyed:
			raise UseAfterFree(f"context {ctx} has been destroyed")
		raise UseAfterFree(f"context {ctx} is not known to this arena")

	@staticmethod
	def _check_thread(ctx: ContextId, state: _ContextState) -> None:
		if state.owner_thread is None:
			raise ThreadAffinityError(f"context {ctx} is detached; adopt it before use")
		if state.owner_thread != threading.get_ident():
			raise ThreadAffinityError(f"context {ctx} is owned by another thread")


class SharedContext:
	"""
	Lock-synchronised wrapper that lets several threads take turns on one context.

	    shared = SharedContext(arena, ctx)
	    with shared.acquire() as ctx:
	        ...  # the calling thread owns ctx inside the block

	The wrapped context is detached on construction, so it must be created (or
	adopted) by the constructing thread.
	"""

	def __init__(self, arena: HandleArena, ctx: ContextId) -> None:
		self._arena = arena
		self._ctx = ctx
		self._lock = threading.RLock()
		self._depth = 0
		arena.detach(ctx)

	@property
	def context(self) -> ContextId:
		return self._ctx

	@contextmanager
	def acquire(self) -> Iterator[ContextId]:
		with self._lock:
			if self._depth == 0:
				self._arena.adopt(self._ctx)
			self._depth += 1
			try:
				yield self._ctx
			finally:
				self._depth -= 1
				if self._depth == 0 and self._arena.is_alive(self._ctx):
					self._arena.detach(self._ctx)
