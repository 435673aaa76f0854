# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from typing import Iterator

import pytest

from irforge.arena import ContextId, TypeId
from irforge.forge import Forge


@pytest.fixture
def forge() -> Forge:
	return Forge()


@pytest.fixture
def ctx(forge: Forge) -> Iterator[ContextId]:
	"""Fresh context, destroyed after the test unless the test already did."""
	with forge.context("test") as c:
		yield c


@pytest.fixture
def i32(forge: Forge, ctx: ContextId) -> TypeId:
	return forge.types.get_integer(ctx, 32)
