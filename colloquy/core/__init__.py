from colloquy.core.executor import StepExecutor
from colloquy.core.registry import Dialog, DialogRegistry
from colloquy.core.triggers import TriggerEvaluator
from colloquy.core.turn_context import TurnContext
from colloquy.core.turn_controller import TurnController

__all__ = [
    "Dialog",
    "DialogRegistry",
    "StepExecutor",
    "TriggerEvaluator",
    "TurnContext",
    "TurnController",
]
