# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
HandleArena lifecycle, cross-context and thread-affinity checks.
"""

from __future__ import annotations

import threading

import pytest

from irforge.arena import ContextId, HandleArena, SharedContext, TypeId
from irforge.errors import CrossContextType, ThreadAffinityError, UseAfterFree
from irforge.forge import Forge


def _in_thread(fn):
	"""Run `fn` on another thread and return the exception it raised (or None)."""
	box = []

	def run():
		try:
			fn()
		except Exception as err:  # noqa: BLE001 - handed back to the test
			box.append(err)

	t = threading.Thread(target=run)
	t.start()
	t.join()
	return box[0] if box else None


def test_destroy_context_releases_every_handle():
	"""After destroy_context every old handle and the context itself are dead."""
	forge = Forge()
	ctx = forge.create_context("gone")
	i32 = forge.types.get_integer(ctx, 32)
	arr = forge.types.get_array(i32, 4)
	value = forge.values.const_int(i32, 7)
	forge.destroy_context(ctx)

	for handle in (i32, arr, value):
		with pytest.raises(UseAfterFree):
			forge.arena.resolve(handle)
	with pytest.raises(UseAfterFree):
		forge.types.get_integer(ctx, 32)
	with pytest.raises(UseAfterFree):
		forge.destroy_context(ctx)


def test_release_single_handle():
	arena = HandleArena()
	ctx = arena.create_context()
	h = arena.tag(object(), ctx, TypeId)
	assert arena.is_live(h)
	assert arena.live_count(ctx) == 1
	arena.release(h)
	assert not arena.is_live(h)
	assert arena.live_count(ctx) == 0
	with pytest.raises(UseAfterFree):
		arena.meta(h)


def test_unknown_context_is_rejected():
	arena = HandleArena()
	arena.create_context()
	with pytest.raises(UseAfterFree):
		arena.check(ContextId(999))


def test_ensure_same_context_reports_owner():
	arena = HandleArena()
	c1 = arena.create_context()
	c2 = arena.create_context()
	h = arena.tag(object(), c1, TypeId)
	arena.ensure_same_context(c1, [h])
	with pytest.raises(CrossContextType):
		arena.ensure_same_context(c2, [h])


def test_destroy_hooks_run_once_per_context():
	arena = HandleArena()
	seen = []
	arena.on_destroy(seen.append)
	ctx = arena.create_context()
	arena.destroy_context(ctx)
	assert seen == [ctx]


def test_foreign_thread_access_raises():
	"""A context is bound to its creating thread, reads included."""
	forge = Forge()
	ctx = forge.create_context()
	i32 = forge.types.get_integer(ctx, 32)

	err = _in_thread(lambda: forge.types.width(i32))
	assert isinstance(err, ThreadAffinityError)
	err = _in_thread(lambda: forge.types.get_integer(ctx, 8))
	assert isinstance(err, ThreadAffinityError)
	assert forge.types.width(i32) == 32


def test_detach_and_adopt_moves_ownership():
	arena = HandleArena()
	ctx = arena.create_context()
	arena.detach(ctx)
	with pytest.raises(ThreadAffinityError):
		arena.check(ctx)

	err = _in_thread(lambda: (arena.adopt(ctx), arena.check(ctx), arena.detach(ctx)))
	assert err is None
	arena.adopt(ctx)
	arena.check(ctx)


def test_shared_context_lets_threads_take_turns():
	forge = Forge()
	ctx = forge.create_context("shared")
	shared = forge.share(ctx)
	widths = []

	def worker(bits):
		with shared.acquire() as c:
			widths.append(forge.types.width(forge.types.get_integer(c, bits)))

	threads = [threading.Thread(target=worker, args=(b,)) for b in (8, 16, 32, 64)]
	for t in threads:
		t.start()
	for t in threads:
		t.join()
	assert sorted(widths) == [8, 16, 32, 64]

	# Outside `acquire` nobody owns it.
	with pytest.raises(ThreadAffinityError):
		forge.arena.check(ctx)
	with shared.acquire() as c:
		with shared.acquire() as again:
			assert again == c
		forge.arena.check(c)


def test_shared_context_survives_destroy_inside_acquire():
	arena = HandleArena()
	ctx = arena.create_context()
	shared = SharedContext(arena, ctx)
	with shared.acquire() as c:
		arena.destroy_context(c)
	assert not arena.is_alive(ctx)
