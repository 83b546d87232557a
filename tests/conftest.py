from __future__ import annotations

from typing import Any

import pytest
from colloquy.capabilities.expressions import SimpleExpressionEvaluator
from colloquy.capabilities.templates import PathTemplateRenderer
from colloquy.core.registry import Dialog, DialogRegistry
from colloquy.core.turn_context import TurnContext
from colloquy.core.turn_controller import TurnController
from colloquy.persistence.memory_storage import MemoryStorage

from tests.fakes import ControllerFactory, make_activity


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def renderer() -> PathTemplateRenderer:
    return PathTemplateRenderer()


@pytest.fixture
def expressions() -> SimpleExpressionEvaluator:
    return SimpleExpressionEvaluator()


@pytest.fixture
def make_controller(
    storage: MemoryStorage,
    renderer: PathTemplateRenderer,
    expressions: SimpleExpressionEvaluator,
) -> ControllerFactory:
    def _make(root: Dialog, *dialogs: Dialog, **kwargs: Any) -> TurnController:
        kwargs.setdefault("renderer", renderer)
        kwargs.setdefault("expressions", expressions)
        target = kwargs.pop("storage", storage)
        return TurnController(DialogRegistry(root, dialogs), target, **kwargs)

    return _make


@pytest.fixture
def turn_context() -> TurnContext:
    return TurnContext(activity=make_activity("hi"), turn_id="turn-1")
