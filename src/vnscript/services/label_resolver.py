"""Label index shared by the reachability analyzer and playback."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List

from vnscript.domain.defs import ScriptDef


@dataclass(frozen=True, slots=True)
class DuplicateLabel:
    label: str
    first_position: int
    position: int


@dataclass(slots=True)
class LabelIndex:
    """Maps label names to 0-based command positions.

    When a label is defined more than once the first definition wins and every
    later one is listed in ``duplicates``.
    """

    positions: Dict[str, int] = field(default_factory=dict)
    labels_by_position: Dict[int, str] = field(default_factory=dict)
    duplicates: List[DuplicateLabel] = field(default_factory=list)

    def resolve(self, label: str | None) -> int | None:
        """Return the position for ``label`` or None when it is not defined."""
        if label is None:
            return None
        return self.positions.get(label)

    def __contains__(self, label: object) -> bool:
        return label in self.positions

    def label_at(self, position: int) -> str | None:
        return self.labels_by_position.get(position)

    def nearest_label(self, position: int) -> str | None:
        """Closest label defined at or before ``position``."""
        best: int | None = None
        for label_position in self.labels_by_position:
            if label_position <= position and (best is None or label_position > best):
                best = label_position
        if best is None:
            return None
        return self.labels_by_position[best]


def build_label_index(script: ScriptDef) -> LabelIndex:
    index = LabelIndex()
    for position, command in enumerate(script.script):
        label = command.label
        if label is None:
            continue
        first = index.positions.get(label)
        if first is not None:
            index.duplicates.append(DuplicateLabel(label=label, first_position=first, position=position))
            continue
        index.positions[label] = position
        index.labels_by_position[position] = label
    return index
