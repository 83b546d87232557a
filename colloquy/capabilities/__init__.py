"""Reference implementations of the recognizer, template and expression capabilities."""

from colloquy.capabilities.expressions import SimpleExpressionEvaluator
from colloquy.capabilities.regex_recognizer import RegexRecognizer
from colloquy.capabilities.templates import PathTemplateRenderer

__all__ = [
    "PathTemplateRenderer",
    "RegexRecognizer",
    "SimpleExpressionEvaluator",
]
