"""Static reachability analysis for scenario scripts."""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Literal, MutableMapping, Sequence, Set

from vnscript.domain.defs import CommandDef, ScriptDef
from vnscript.services.label_resolver import LabelIndex, build_label_index


IssueType = Literal[
    "unreachable",
    "orphan_choice",
    "dangling_jump",
    "duplicate_label",
    "ambiguous_control_flow",
    "self_jump",
    "infinite_loop",
    "empty_script",
    "choice_without_text",
]
Severity = str

_ERROR_TYPES = {"orphan_choice", "dangling_jump", "duplicate_label", "self_jump", "infinite_loop"}


@dataclass(frozen=True, slots=True)
class PathIssue:
    type: IssueType
    message: str
    position: int | None = None
    label: str | None = None

    @property
    def severity(self) -> Severity:
        return "ERROR" if self.type in _ERROR_TYPES else "WARN"


@dataclass(slots=True)
class LabelInfo:
    name: str
    defined_at: int
    referenced_from: List[int] = field(default_factory=list)
    is_reachable: bool = False


@dataclass(slots=True)
class ReachabilityReport:
    labels: Dict[str, LabelInfo]
    issues: List[PathIssue]
    visited: Set[int]
    total_count: int

    @property
    def reachable_count(self) -> int:
        return len(self.visited)

    def unreachable_labels(self) -> List[LabelInfo]:
        return [info for info in self.labels.values() if not info.is_reachable]

    def issues_of(self, issue_type: IssueType) -> List[PathIssue]:
        return [issue for issue in self.issues if issue.type == issue_type]

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "ERROR" for issue in self.issues)


def format_issue(issue: PathIssue) -> str:
    location = f" (#{issue.position + 1})" if issue.position is not None else ""
    return f"[{issue.severity}] {issue.type}: {issue.message}{location}"


def successors(command: CommandDef, position: int, total: int, index: LabelIndex) -> List[int]:
    """Positions a command can hand control to, over-approximating ``if``.

    ``jump`` wins over everything else. ``if`` adds its target on top of the
    normal flow, which is either the choice targets or the next command.
    """
    targets: List[int | None] = []
    if command.jump is not None:
        targets.append(index.resolve(command.jump))
    else:
        if command.if_ is not None:
            targets.append(index.resolve(command.if_.jump))
        if command.choices is not None:
            targets.extend(index.resolve(choice.jump) for choice in command.choices)
        elif position + 1 < total:
            targets.append(position + 1)
    return [target for target in targets if target is not None]


def analyze_reachability(script: ScriptDef, index: LabelIndex | None = None) -> ReachabilityReport:
    """Report which labels can be reached from the first command.

    Both branches of every ``if`` are treated as live, so a label is reachable
    when some assignment of variables could lead to it.
    """
    if index is None:
        index = build_label_index(script)
    commands = script.script
    total = len(commands)
    issues: List[PathIssue] = []

    labels: Dict[str, LabelInfo] = {
        name: LabelInfo(name=name, defined_at=position) for name, position in index.positions.items()
    }
    for duplicate in index.duplicates:
        issues.append(
            PathIssue(
                type="duplicate_label",
                message=(
                    f'Label "{duplicate.label}" is defined at #{duplicate.first_position + 1} '
                    f"and again at #{duplicate.position + 1}"
                ),
                position=duplicate.position,
                label=duplicate.label,
            )
        )

    _collect_references(commands, labels)
    visited = _traverse(commands, index)
    for position in visited:
        label = index.label_at(position)
        if label is not None:
            labels[label].is_reachable = True

    for info in labels.values():
        if info.is_reachable:
            continue
        if info.referenced_from:
            message = f'Label "{info.name}" is referenced but unreachable from start'
        else:
            message = f'Label "{info.name}" is never referenced and unreachable from start'
        issues.append(PathIssue(type="unreachable", message=message, position=info.defined_at, label=info.name))

    for position, command in enumerate(commands):
        _check_targets(position, command, index, issues)

    _check_auto_advance_cycles(commands, index, issues)
    if total == 0:
        issues.append(PathIssue(type="empty_script", message="Scenario has no commands"))

    return ReachabilityReport(labels=labels, issues=issues, visited=visited, total_count=total)


def _collect_references(commands: Sequence[CommandDef], labels: MutableMapping[str, LabelInfo]) -> None:
    for position, command in enumerate(commands):
        for target in command.jump_targets():
            info = labels.get(target)
            if info is not None and position not in info.referenced_from:
                info.referenced_from.append(position)


def _traverse(commands: Sequence[CommandDef], index: LabelIndex) -> Set[int]:
    total = len(commands)
    visited: Set[int] = set()
    if total == 0:
        return visited
    queue = deque([0])
    while queue:
        position = queue.popleft()
        if position in visited:
            continue
        visited.add(position)
        for target in successors(commands[position], position, total, index):
            if target not in visited:
                queue.append(target)
    return visited


def _check_targets(position: int, command: CommandDef, index: LabelIndex, issues: List[PathIssue]) -> None:
    if command.jump is not None and command.jump not in index:
        issues.append(
            PathIssue(
                type="dangling_jump",
                message=f'Jump to undefined label "{command.jump}"',
                position=position,
                label=command.jump,
            )
        )
    if command.if_ is not None and command.if_.jump not in index:
        issues.append(
            PathIssue(
                type="dangling_jump",
                message=f'Conditional jump to undefined label "{command.if_.jump}"',
                position=position,
                label=command.if_.jump,
            )
        )
    for choice_number, choice in enumerate(command.choices or (), start=1):
        if choice.jump not in index:
            issues.append(
                PathIssue(
                    type="orphan_choice",
                    message=f'Choice {choice_number} jumps to undefined label "{choice.jump}"',
                    position=position,
                    label=choice.jump,
                )
            )
    if command.jump is not None and command.choices is not None:
        issues.append(
            PathIssue(
                type="ambiguous_control_flow",
                message="Command has both jump and choices; the jump takes precedence",
                position=position,
            )
        )
    if command.label is not None and command.jump == command.label:
        issues.append(
            PathIssue(
                type="self_jump",
                message=f'Self-referencing jump at label "{command.label}"',
                position=position,
                label=command.label,
            )
        )
    if command.choices is not None and command.text is None:
        issues.append(
            PathIssue(
                type="choice_without_text",
                message="Choice command without display text",
                position=position,
            )
        )


def _check_auto_advance_cycles(
    commands: Sequence[CommandDef], index: LabelIndex, issues: List[PathIssue]
) -> None:
    """Flag loops of commands that never suspend and never branch."""
    total = len(commands)
    adjacency: Dict[int, int] = {}
    for position, command in enumerate(commands):
        if command.has_display() or command.if_ is not None:
            continue
        if command.jump is not None:
            target = index.resolve(command.jump)
        else:
            target = position + 1 if position + 1 < total else None
        if target is not None:
            adjacency[position] = target

    state: Dict[int, int] = {}
    for start in sorted(adjacency):
        if start in state:
            continue
        path: List[int] = []
        current: int | None = start
        while current is not None and current in adjacency and current not in state:
            state[current] = 1
            path.append(current)
            current = adjacency[current]
        if current is not None and state.get(current) == 1:
            cycle = path[path.index(current) :]
            if not _is_self_jump(commands[cycle[0]]) or len(cycle) > 1:
                issues.append(_cycle_issue(cycle, index))
        for node in path:
            state[node] = 2


def _is_self_jump(command: CommandDef) -> bool:
    return command.label is not None and command.jump == command.label


def _cycle_issue(cycle: Sequence[int], index: LabelIndex) -> PathIssue:
    names = [index.label_at(position) or f"#{position + 1}" for position in cycle]
    cycle_path = " -> ".join(names + [names[0]])
    return PathIssue(
        type="infinite_loop",
        message=f"Commands loop without ever waiting for the player: {cycle_path}",
        position=cycle[0],
        label=index.label_at(cycle[0]),
    )
