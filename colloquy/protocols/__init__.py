from colloquy.protocols.capabilities import ExpressionEvaluator, Recognizer, TemplateRenderer
from colloquy.protocols.storage import Storage

__all__ = [
    "ExpressionEvaluator",
    "Recognizer",
    "Storage",
    "TemplateRenderer",
]
