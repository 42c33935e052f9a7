"""
Detection of unresolved template placeholders in a request configuration.

The workflow engine substitutes ``{=Document:FIELD}`` style templates only
when the robot runs inside a real workflow; the configuration UI shows them
as ``{{Display Name}}``. A test request containing either kind is sent with
the literal placeholder text.
"""

import json
import re
from typing import Any, List


# {=Document:TITLE}, {=Variable:Amount}, {=A12345_67890_11111_22222:Result}
WORKFLOW_TEMPLATE_PATTERN = re.compile(r'\{=(\w+):(\w+)\}')

# {{Deal title}} as rendered by the settings UI
DISPLAY_PLACEHOLDER_PATTERN = re.compile(r'\{\{([^{}]+)\}\}')


def extract_variables(template: str) -> List[str]:
    """
    Extract all placeholders from a template string.

    Args:
        template: String that may contain placeholders

    Returns:
        Placeholder texts in order of appearance

    Example:
        >>> extract_variables("Deal {=Document:TITLE} for {{Client name}}")
        ['{=Document:TITLE}', '{{Client name}}']
    """
    if not template:
        return []

    found = [
        (match.start(), match.group(0))
        for pattern in (WORKFLOW_TEMPLATE_PATTERN, DISPLAY_PLACEHOLDER_PATTERN)
        for match in pattern.finditer(template)
    ]
    return [text for _, text in sorted(found)]


def collect_unresolved(value: Any) -> List[str]:
    """
    Collect placeholders from every string inside a nested structure.

    Dicts, lists, tuples and pydantic models are walked recursively.
    """
    if hasattr(value, "model_dump"):
        value = value.model_dump(by_alias=True)
    if isinstance(value, str):
        return extract_variables(value)
    if isinstance(value, dict):
        return [v for item in value.values() for v in collect_unresolved(item)]
    if isinstance(value, (list, tuple)):
        return [v for item in value for v in collect_unresolved(item)]
    return []


def has_unresolved_variables(value: Any) -> bool:
    """Whether any placeholder remains anywhere in ``value``."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            pass
    return bool(collect_unresolved(value))
