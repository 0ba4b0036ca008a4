"""
Variable Resolver - reads values out of nested event payloads.

Paths use dot notation with optional bracket indices or selectors:

    data.route.name
    data.route.stops[0].location
    data.route.stops.0.location
    data.route.stops[type=pickup].location
    data.matrix[1][0]

A selector picks the first mapping in a list whose key equals the given
text. Resolution never raises: a missing key, a None along the way, an
index out of range or a type mismatch all resolve to None.
"""

import re
from typing import Any, List, Mapping, NamedTuple, Optional, Sequence, Union

_SEGMENT_PATTERN = re.compile(r"^([^\[\]]*)((?:\[[^\[\]]+\])*)$")
_BRACKET_PATTERN = re.compile(r"\[([^\[\]]+)\]")
_SELECTOR_PATTERN = re.compile(r"^\s*([A-Za-z0-9_\-]+)\s*=\s*(.*?)\s*$")


class Selector(NamedTuple):
    key: str
    value: str


PathStep = Union[str, int, Selector]


def _parse_bracket(content: str) -> Optional[PathStep]:
    if content.isdigit():
        return int(content)
    match = _SELECTOR_PATTERN.match(content)
    if match:
        return Selector(*match.groups())
    return None


def parse_path(data_path: str) -> Optional[List[PathStep]]:
    """
    Split a data path into key, index and selector steps.

    Args:
        data_path: Path such as "data.route.stops[0].location"

    Returns:
        List of steps (str keys, int indices, Selector), or None if the path is malformed
    """
    if not isinstance(data_path, str) or not data_path.strip():
        return None

    steps: List[PathStep] = []
    for segment in data_path.strip().split("."):
        match = _SEGMENT_PATTERN.match(segment)
        if not match:
            return None
        name, brackets = match.groups()
        if name:
            steps.append(name)
        elif not brackets:
            # empty segment, e.g. "data..route"
            return None
        for content in _BRACKET_PATTERN.findall(brackets):
            step = _parse_bracket(content)
            if step is None:
                return None
            steps.append(step)
    return steps


def _is_list(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def _step(current: Any, step: PathStep) -> Any:
    if current is None:
        return None

    if isinstance(step, Selector):
        if not _is_list(current):
            return None
        for item in current:
            if not isinstance(item, Mapping) or item.get(step.key) is None:
                continue
            if str(item[step.key]) == step.value:
                return item
        return None

    if isinstance(step, int):
        if _is_list(current):
            return current[step] if step < len(current) else None
        return None

    if isinstance(current, Mapping):
        return current.get(step)

    # "stops.0.location" style: numeric key into a list
    if step.isdigit() and _is_list(current):
        index = int(step)
        return current[index] if index < len(current) else None

    return None


def resolve_path(data_path: str, event: Any) -> Optional[Any]:
    """
    Resolve a data path against an event payload.

    Args:
        data_path: Dot/bracket path, rooted at the event ("data.stop.address")
        event: Event mapping (or any nested structure)

    Returns:
        The value found at the path, or None if any step is missing
    """
    steps = parse_path(data_path)
    if steps is None:
        return None

    current = event
    for step in steps:
        current = _step(current, step)
        if current is None:
            return None
    return current


class VariableResolver:
    """Injectable wrapper around resolve_path()."""

    def resolve(self, data_path: str, event: Any) -> Optional[Any]:
        return resolve_path(data_path, event)
