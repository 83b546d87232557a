"""Colloquy: a rule-triggered, stack-based dialog engine."""

__version__ = "0.1.0"
