"""Parsers for stage responses.

Turns raw provider dicts into typed models, raising ParseError on shape
mismatches so stages can decide whether the failure is fatal.
"""

import json
from typing import Any

from pydantic import TypeAdapter, ValidationError

from ..core.errors import ParseError
from ..core.models import (
    AttributeMeta,
    AttributeResponse,
    DraftedEntity,
    FlatAttributeResponse,
    StructuredAttributeResponse,
)


_attribute_response_adapter = TypeAdapter(AttributeResponse)


def parse_attribute_response(data: Any) -> StructuredAttributeResponse | FlatAttributeResponse:
    """Classify an attribute-stage response by the presence of ``attributes``.

    ``{attributes, attributeMetadata}`` is the structured shape; anything else
    that is a JSON object is treated as a legacy flat name -> value map.
    """
    if not isinstance(data, dict):
        raise ParseError(f"Attribute response must be an object, got {type(data).__name__}")

    if "attributes" in data:
        payload = {
            "shape": "structured",
            "attributes": data["attributes"],
            "attributeMetadata": data.get("attributeMetadata") or {},
        }
    else:
        payload = {"shape": "flat", "values": data}

    try:
        return _attribute_response_adapter.validate_python(payload)
    except ValidationError as e:
        raise ParseError(f"Malformed attribute response: {e}") from e


def split_inline_record(raw: Any) -> tuple[Any, dict | None]:
    """Split ``{value, type, description, reference}`` into (value, metadata).

    Plain values come back as (raw, None).
    """
    if isinstance(raw, dict) and "value" in raw and "type" in raw:
        meta = {key: val for key, val in raw.items() if key != "value"}
        return raw["value"], meta
    return raw, None


def coerce_metadata(raw: Any) -> AttributeMeta | None:
    """Validate model-supplied metadata; None when absent or unusable.

    Models often send the reference scale as an object (``{"10": "dagger"}``)
    or enum values as numbers; both are flattened to strings first.
    """
    if not isinstance(raw, dict):
        return None
    meta = dict(raw)
    reference = meta.get("reference")
    if reference is not None and not isinstance(reference, str):
        meta["reference"] = json.dumps(reference, default=str)
    values = meta.get("values")
    if isinstance(values, list):
        meta["values"] = [v if isinstance(v, str) else json.dumps(v) for v in values]
    try:
        return AttributeMeta.model_validate(meta)
    except ValidationError:
        return None


def infer_attribute_type(value: Any) -> str:
    """Attribute type matching a value's runtime shape."""
    # bool is a subclass of int, so check it first
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, (list, tuple)):
        return "array"
    return "string"


def parse_drafted_entity(data: Any) -> DraftedEntity:
    if not isinstance(data, dict):
        raise ParseError(f"Entity response must be an object, got {type(data).__name__}")
    try:
        return DraftedEntity.model_validate(data)
    except ValidationError as e:
        raise ParseError(f"Entity response failed schema validation: {e}") from e


def validate_draft_response(
    data: dict, categories: list[str], category_required: bool
) -> tuple[bool, str]:
    """Validator callback for the drafting call (see LLMProvider.complete_structured)."""
    problems = []
    try:
        drafted = parse_drafted_entity(data)
    except ParseError as e:
        problems.append(str(e))
        drafted = None

    if drafted is not None:
        category = (drafted.category or "").strip().lower()
        if category and category not in {c.lower() for c in categories}:
            problems.append(
                f"category '{drafted.category}' is not one of: {', '.join(categories)}"
            )
        elif not category and category_required:
            problems.append("category is required")

    if not problems:
        return True, ""

    lines = ["## ERROR in entity response"]
    lines.extend(f"Problem: {problem}" for problem in problems)
    lines.append("Fix the problems above and return the complete entity again.")
    return False, "\n".join(lines)
