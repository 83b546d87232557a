"""Dialog definitions and the registry the executor resolves targets against."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator

from pydantic import BaseModel, ConfigDict, Field

from colloquy.errors import UnknownDialogReference
from colloquy.models.rules import TriggerRule
from colloquy.models.steps import dialog_targets
from colloquy.protocols.capabilities import Recognizer

logger = logging.getLogger(__name__)


class Dialog(BaseModel):
    """A named set of trigger rules, optionally with its own recognizer.

    With ``auto_end`` a Frame running this dialog ends as soon as it has
    handled the turn and has nothing left to do, returning to its caller.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str = Field(min_length=1)
    rules: list[TriggerRule] = Field(default_factory=list)
    recognizer: Recognizer | None = Field(default=None, exclude=True)
    auto_end: bool = True

    def ordered_rules(self) -> list[TriggerRule]:
        # sorted() is stable, so declaration order breaks priority ties
        return sorted(self.rules, key=lambda rule: -rule.priority)

    def referenced_dialogs(self) -> set[str]:
        targets: set[str] = set()
        for rule in self.rules:
            targets |= dialog_targets(rule.steps)
        return targets


class DialogRegistry:
    """Dialogs addressable by id; one of them is the conversation root."""

    def __init__(self, root: Dialog, dialogs: Iterable[Dialog] = ()) -> None:
        self._dialogs: dict[str, Dialog] = {}
        self.root_id = root.id
        self.add(root)
        for dialog in dialogs:
            self.add(dialog)

    def add(self, dialog: Dialog) -> None:
        if dialog.id in self._dialogs:
            raise ValueError(f"dialog already registered: {dialog.id}")
        self._dialogs[dialog.id] = dialog

    def get(self, dialog_id: str, *, source: str | None = None) -> Dialog:
        try:
            return self._dialogs[dialog_id]
        except KeyError:
            raise UnknownDialogReference(dialog_id, source) from None

    @property
    def root(self) -> Dialog:
        return self._dialogs[self.root_id]

    def __contains__(self, dialog_id: object) -> bool:
        return dialog_id in self._dialogs

    def __iter__(self) -> Iterator[Dialog]:
        return iter(self._dialogs.values())

    def __len__(self) -> int:
        return len(self._dialogs)

    def validate(self) -> None:
        """Fail fast on CallDialog/GotoDialog targets that are not registered."""
        for dialog in self._dialogs.values():
            for target in sorted(dialog.referenced_dialogs()):
                if target not in self._dialogs:
                    raise UnknownDialogReference(target, dialog.id)
        logger.debug("Validated %d dialogs (root=%s)", len(self._dialogs), self.root_id)


__all__ = ["Dialog", "DialogRegistry"]
