"""
Template Renderer - turns a stored template plus an event into a message.
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from common.constants import PLACEHOLDER_PATTERN
from services.message_broker.errors import MissingRequiredVariable
from services.message_broker.formatters import VALUE_FORMATTERS
from services.message_broker.schemas import (
    GeneratedMessage,
    MessageButton,
    ResponseOption,
    Template,
    TemplateVariable,
)
from services.message_broker.variable_resolver import VariableResolver

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(PLACEHOLDER_PATTERN)


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def _to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


_CONDITION_OPERATORS = {
    "eq": lambda actual, operand: actual == operand,
    "ne": lambda actual, operand: actual != operand,
    "in": lambda actual, operand: actual in operand,
    "not_in": lambda actual, operand: actual not in operand,
}


def _satisfies(actual: Any, expected: Any) -> bool:
    if isinstance(expected, Mapping) and len(expected) == 1:
        operator, operand = next(iter(expected.items()))
        check = _CONDITION_OPERATORS.get(operator)
        if check is not None:
            if operator in ("in", "not_in") and not isinstance(operand, (list, tuple)):
                operand = [operand]
            return check(actual, operand)
    return actual == expected


class TemplateRenderer:
    def __init__(self, resolver: Optional[VariableResolver] = None) -> None:
        self._resolver = resolver or VariableResolver()

    def render(
        self,
        template: Template,
        event: Mapping[str, Any],
        variables: Iterable[TemplateVariable],
    ) -> GeneratedMessage:
        """
        Render a template against an event.

        Raises:
            MissingRequiredVariable: a required placeholder has no value and no default
        """
        message, _ = self.render_with_report(template, event, variables)
        return message

    def render_with_report(
        self,
        template: Template,
        event: Mapping[str, Any],
        variables: Iterable[TemplateVariable],
    ) -> Tuple[GeneratedMessage, List[str]]:
        """
        Render a template and report placeholders that have no variable definition.

        Args:
            template: Template to render
            event: Event payload the variable paths are resolved against
            variables: Variable bindings; only those for template.event_type are used

        Returns:
            Tuple of (rendered message, sorted list of unknown placeholder names)

        Raises:
            MissingRequiredVariable: a required placeholder has no value and no default
        """
        bindings: Dict[str, TemplateVariable] = {
            variable.variable_name: variable
            for variable in variables
            if variable.event_type == template.event_type
        }
        unknown: set = set()

        header = self._substitute(template.header, event, bindings, unknown, template.event_type)
        body = self._substitute(template.body, event, bindings, unknown, template.event_type)
        footer = self._substitute(template.footer, event, bindings, unknown, template.event_type)

        message = GeneratedMessage(
            type=template.template_type,
            header=header,
            body=body or "",
            footer=footer,
            buttons=self.build_buttons(template.response_options, event),
        )
        return message, sorted(unknown)

    def build_buttons(
        self, options: Iterable[ResponseOption], event: Mapping[str, Any]
    ) -> List[MessageButton]:
        """Active options whose display conditions hold, in ascending sort_order."""
        visible = [
            option
            for option in options
            if option.is_active and self.conditions_match(option.display_conditions, event)
        ]
        visible.sort(key=lambda option: option.sort_order)
        return [
            MessageButton(
                text=option.button_text,
                payload=option.button_payload,
                type=option.button_type,
            )
            for option in visible
        ]

    def conditions_match(
        self, conditions: Optional[Mapping[str, Any]], event: Mapping[str, Any]
    ) -> bool:
        """
        Evaluate display conditions: every key must satisfy its expectation.

        A key starting with "data." is a path rooted at the event; any other
        key is looked up in event["data"] first and then at the event root.
        The expectation is either a plain value (equality) or a single
        operator mapping: {"eq": v}, {"ne": v}, {"in": [...]}, {"not_in": [...]}.
        An absent value equals nothing, so "ne" and "not_in" hold for it.
        """
        if not conditions:
            return True

        for path, expected in conditions.items():
            if not _satisfies(self._condition_value(path, event), expected):
                return False
        return True

    def _condition_value(self, path: str, event: Mapping[str, Any]) -> Any:
        if path == "data" or path.startswith("data."):
            return self._resolver.resolve(path, event)
        data = event.get("data") if isinstance(event, Mapping) else None
        value = self._resolver.resolve(path, data) if data is not None else None
        if value is None:
            value = self._resolver.resolve(path, event)
        return value

    def _substitute(
        self,
        text: Optional[str],
        event: Mapping[str, Any],
        bindings: Mapping[str, TemplateVariable],
        unknown: set,
        event_type: str,
    ) -> Optional[str]:
        if text is None:
            return None

        def replace(match: re.Match) -> str:
            name = match.group(1)
            variable = bindings.get(name)
            if variable is None:
                unknown.add(name)
                return ""

            value = self._variable_value(variable, event)
            if _is_empty(value):
                value = variable.default_value
            if value is None:
                if variable.is_required:
                    raise MissingRequiredVariable(name, event_type)
                return ""
            return _to_text(value)

        return _PLACEHOLDER_RE.sub(replace, text)

    def _variable_value(self, variable: TemplateVariable, event: Mapping[str, Any]) -> Any:
        value = self._resolver.resolve(variable.data_path, event)
        if _is_empty(value):
            return None

        if variable.value_map:
            key = _to_text(value)
            if key in variable.value_map:
                value = variable.value_map[key]
            elif "*" in variable.value_map:
                value = variable.value_map["*"]

        if variable.value_format:
            formatter = VALUE_FORMATTERS.get(variable.value_format)
            if formatter is None:
                logger.warning(
                    f"Unknown value format '{variable.value_format}' for variable "
                    f"'{variable.variable_name}'; using the raw value"
                )
            else:
                value = formatter(value)
        return value
