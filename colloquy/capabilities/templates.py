"""Template renderer for SendText and Prompt texts, built on Jinja."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from jinja2 import ChainableUndefined, Environment, Template, TemplateError

from colloquy.errors import TemplateRenderError
from colloquy.state.paths import SCOPES

logger = logging.getLogger(__name__)


def _blank_none(value: Any) -> Any:
    return "" if value is None else value


class _ScopeEnvironment(Environment):
    """Resolve ``user.items`` as a key lookup, never as a ``dict`` method."""

    def getattr(self, obj: Any, attribute: str) -> Any:
        if isinstance(obj, Mapping):
            try:
                return obj[attribute]
            except KeyError:
                return self.undefined(obj=obj, name=attribute)
        return super().getattr(obj, attribute)


class PathTemplateRenderer:
    """Render ``{user.name}``-style references against the scope snapshot.

    Single braces delimit expressions (``{user.age + 1}`` works too) and the
    usual ``{% if %}`` blocks are available. Missing values and unknown names
    render as empty text. ``templates`` maps names to sources, so a step may
    reference a template by name instead of carrying the text inline.
    """

    def __init__(self, templates: Mapping[str, str] | None = None) -> None:
        self._templates = dict(templates or {})
        self._jinja = _ScopeEnvironment(
            variable_start_string="{",
            variable_end_string="}",
            undefined=ChainableUndefined,
            finalize=_blank_none,
            autoescape=False,
            keep_trailing_newline=True,
        )
        self._compiled: dict[str, Template] = {}

    async def render(self, template: str, scopes: Mapping[str, Any]) -> str:
        source = self._templates.get(template, template)
        context = {scope: scopes.get(scope) or {} for scope in SCOPES}
        try:
            compiled = self._compiled.get(source)
            if compiled is None:
                compiled = self._jinja.from_string(source)
                self._compiled[source] = compiled
            return compiled.render(context)
        except TemplateError as exc:
            logger.warning("Template %r failed: %s", template, exc)
            raise TemplateRenderError(template, str(exc)) from exc


__all__ = ["PathTemplateRenderer"]
