"""Load dialog definitions from YAML.

A document names the root dialog, an optional default regex recognizer and a
list of dialogs::

    root: main
    recognizer:
      intents:
        greet: "hello|hi there"
    dialogs:
      - id: main
        auto_end: false
        rules:
          - event: conversationStarted
            steps:
              - send_text: "Welcome!"
          - intent: greet
            steps:
              - prompt: {prompt: "Name?", property: user.name}
              - send_text: "Hi {user.name}"
          - fallback: true
            steps:
              - send_text: "Sorry?"

Steps use a one-key shorthand (``send_text: "..."``, ``call_dialog: id``,
``end_dialog``, ``branch: {if, then, else}``) or the explicit ``kind`` form.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

import yaml
from pydantic import ValidationError

from colloquy.capabilities.regex_recognizer import RegexRecognizer
from colloquy.core.registry import Dialog, DialogRegistry
from colloquy.errors import DialogDefinitionError, UnknownDialogReference
from colloquy.models.rules import MatchKind, TriggerRule
from colloquy.models.steps import STEP_LIST_ADAPTER, Step, StepKind

_BARE_STEPS = {StepKind.wait_for_input.value, StepKind.end_dialog.value}
_TARGET_STEPS = {StepKind.call_dialog.value, StepKind.goto_dialog.value}
_RULE_KEYS = {"intent", "event", "fallback", "mode", "priority", "steps"}


@dataclass(slots=True)
class LoadedDialogs:
    registry: DialogRegistry
    recognizer: RegexRecognizer | None


def _step_dict(raw: Any, where: str) -> dict[str, Any]:
    if isinstance(raw, str):
        if raw not in _BARE_STEPS:
            raise DialogDefinitionError(f"{where}: unknown step {raw!r}")
        return {"kind": raw}
    if not isinstance(raw, dict):
        raise DialogDefinitionError(f"{where}: a step must be a string or a mapping")
    if "kind" in raw:
        return _expand_nested(dict(raw), where)
    if len(raw) != 1:
        raise DialogDefinitionError(f"{where}: shorthand steps take exactly one key, got {sorted(raw)}")

    kind, body = next(iter(raw.items()))
    if kind == StepKind.send_text.value:
        return {"kind": kind, "template": body}
    if kind in _TARGET_STEPS:
        return {"kind": kind, "dialog": body}
    if kind in _BARE_STEPS:
        return {"kind": kind}
    if kind == StepKind.prompt.value:
        if not isinstance(body, dict):
            raise DialogDefinitionError(f"{where}: prompt takes a mapping")
        return {"kind": kind, **body}
    if kind == StepKind.branch.value:
        if not isinstance(body, dict) or "if" not in body:
            raise DialogDefinitionError(f"{where}: branch needs an 'if' condition")
        return {
            "kind": kind,
            "condition": body["if"],
            "then_steps": _step_dicts(body.get("then") or [], f"{where}.then"),
            "else_steps": _step_dicts(body.get("else") or [], f"{where}.else"),
        }
    raise DialogDefinitionError(f"{where}: unknown step {kind!r}")


def _expand_nested(step: dict[str, Any], where: str) -> dict[str, Any]:
    for arm in ("then_steps", "else_steps"):
        if arm in step:
            step[arm] = _step_dicts(step[arm], f"{where}.{arm}")
    return step


def _step_dicts(raw: Any, where: str) -> list[dict[str, Any]]:
    if not isinstance(raw, list):
        raise DialogDefinitionError(f"{where}: steps must be a list")
    return [_step_dict(item, f"{where}[{index}]") for index, item in enumerate(raw)]


def parse_steps(raw: Any, where: str = "steps") -> list[Step]:
    try:
        return STEP_LIST_ADAPTER.validate_python(_step_dicts(raw, where))
    except ValidationError as exc:
        raise DialogDefinitionError(f"{where}: {exc}") from exc


def _parse_rule(raw: Any, where: str) -> TriggerRule:
    if not isinstance(raw, dict):
        raise DialogDefinitionError(f"{where}: a rule must be a mapping")
    unknown = set(raw) - _RULE_KEYS
    if unknown:
        raise DialogDefinitionError(f"{where}: unknown rule keys {sorted(unknown)}")
    matches = [kind for kind in MatchKind if kind.value in raw]
    if len(matches) != 1:
        raise DialogDefinitionError(f"{where}: a rule needs exactly one of intent, event, fallback")

    match = matches[0]
    data: dict[str, Any] = {
        "match": match,
        "steps": parse_steps(raw.get("steps") or [], f"{where}.steps"),
    }
    if match != MatchKind.fallback:
        data["name"] = raw[match.value]
    for key in ("mode", "priority"):
        if key in raw:
            data[key] = raw[key]
    try:
        return TriggerRule.model_validate(data)
    except ValidationError as exc:
        raise DialogDefinitionError(f"{where}: {exc}") from exc


def _parse_recognizer(raw: Any, where: str) -> RegexRecognizer | None:
    if raw is None:
        return None
    intents = raw.get("intents") if isinstance(raw, dict) else None
    if not isinstance(intents, dict):
        raise DialogDefinitionError(f"{where}: recognizer needs an 'intents' mapping")
    try:
        return RegexRecognizer({str(name): str(pattern) for name, pattern in intents.items()})
    except re.error as exc:
        raise DialogDefinitionError(f"{where}: invalid intent pattern: {exc}") from exc


def _parse_dialog(raw: Any, where: str) -> Dialog:
    if not isinstance(raw, dict) or not raw.get("id"):
        raise DialogDefinitionError(f"{where}: a dialog must be a mapping with an 'id'")
    where = f"dialog {raw['id']}"
    rules_raw = raw.get("rules") or []
    if not isinstance(rules_raw, list):
        raise DialogDefinitionError(f"{where}: rules must be a list")
    return Dialog(
        id=str(raw["id"]),
        rules=[_parse_rule(rule, f"{where}.rules[{index}]") for index, rule in enumerate(rules_raw)],
        recognizer=_parse_recognizer(raw.get("recognizer"), where),
        auto_end=bool(raw.get("auto_end", True)),
    )


def load_dialogs(text: str) -> LoadedDialogs:
    """Parse a YAML dialog document into a validated registry."""
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise DialogDefinitionError(f"invalid YAML: {exc}") from exc
    if not isinstance(document, dict):
        raise DialogDefinitionError("dialog document must be a YAML mapping")

    dialogs_raw = document.get("dialogs")
    if not isinstance(dialogs_raw, list) or not dialogs_raw:
        raise DialogDefinitionError("'dialogs' must be a non-empty list")
    dialogs = [_parse_dialog(item, f"dialogs[{index}]") for index, item in enumerate(dialogs_raw)]

    root_id = document.get("root", dialogs[0].id)
    root = next((dialog for dialog in dialogs if dialog.id == root_id), None)
    if root is None:
        raise DialogDefinitionError(f"root dialog {root_id!r} is not defined")

    try:
        registry = DialogRegistry(root, [dialog for dialog in dialogs if dialog is not root])
        registry.validate()
    except (ValueError, UnknownDialogReference) as exc:
        raise DialogDefinitionError(str(exc)) from exc

    return LoadedDialogs(
        registry=registry,
        recognizer=_parse_recognizer(document.get("recognizer"), "recognizer"),
    )


__all__ = ["LoadedDialogs", "load_dialogs", "parse_steps"]
