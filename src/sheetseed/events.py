"""Synchronous progress notifications for export and generate runs."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


class StatusEvent(str, Enum):
    EXPORT_TABLE = "export_table"
    GENERATE_FLAVOR = "generate_flavor"
    GENERATE_TABLE = "generate_table"


@dataclass(frozen=True)
class StatusEventArgs:
    """A single progress notification.

    ``message`` is a template such as ``"Exporting table {Table}."``; its
    placeholders are filled from ``metadata`` case-insensitively, and
    unknown placeholders are left as they are.
    """

    event: StatusEvent
    template: str
    metadata: dict[str, object]

    @property
    def message(self) -> str:
        bag = {key.lower(): value for key, value in self.metadata.items()}

        def _sub(match: re.Match) -> str:
            key = match.group(1).lower()
            return str(bag[key]) if key in bag else match.group(0)

        return _PLACEHOLDER.sub(_sub, self.template)


ProgressObserver = Callable[[StatusEventArgs], None]


def fire(
    observer: ProgressObserver | None, event: StatusEvent, template: str, **metadata: object
) -> None:
    """Notify ``observer`` if there is one."""
    if observer is None:
        return
    observer(StatusEventArgs(event=event, template=template, metadata=metadata))
