"""
Mapping of an HTTP response onto the workflow's return values.
"""

from typing import Any, Iterable

from ..schemas.execute import ExecutionResult, ReturnValues, compact_json
from ..schemas.preview import MappingPreview
from ..schemas.request_config import OutputMapping
from .path_extractor import MISSING, extract


def stringify(value: Any) -> str:
    """
    Render an extracted JSON value as a return value string.

    Objects and arrays become compact JSON, ``null`` becomes ``"null"``,
    booleans are lower-case and integral floats lose their ``.0``.
    """
    if isinstance(value, (dict, list)) or value is None:
        return compact_json(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def response_body_text(result: ExecutionResult) -> str:
    """Structured bodies as compact JSON, anything else verbatim."""
    if result.is_json and isinstance(result.parsed_body, (dict, list)):
        return compact_json(result.parsed_body)
    return result.raw_body


def resolve_mapping(result: ExecutionResult, mapping: OutputMapping) -> tuple[str, bool]:
    """
    Resolve one mapping against the response.

    Returns:
        Tuple of (slot value, whether the path was found)
    """
    value = extract(result.parsed_body, mapping.path) if result.is_json else MISSING
    if value is MISSING:
        return mapping.fallback or "", False
    return stringify(value), True


def active_mappings(mappings: Iterable[OutputMapping]) -> list[OutputMapping]:
    """Mappings with both a path and an output slot."""
    return [m for m in mappings if m.path and m.output]


def build_return_values(result: ExecutionResult, mappings: Iterable[OutputMapping]) -> ReturnValues:
    """
    Produce the return values for a completed execution.

    Args:
        result: Captured response
        mappings: Configured output mappings

    Returns:
        ReturnValues with an empty error and one entry per mapped slot
    """
    outputs = {
        mapping.output: resolve_mapping(result, mapping)[0]
        for mapping in active_mappings(mappings)
    }
    return ReturnValues(
        response_body=response_body_text(result),
        status_code=result.status_code,
        response_headers=compact_json(result.headers),
        error="",
        outputs=outputs,
    )


def preview_mappings(result: ExecutionResult, mappings: Iterable[OutputMapping]) -> list[MappingPreview]:
    """Per-mapping resolution details for the test request UI."""
    previews = []
    for mapping in active_mappings(mappings):
        value, found = resolve_mapping(result, mapping)
        previews.append(MappingPreview(output=mapping.output, path=mapping.path, value=value, found=found))
    return previews
