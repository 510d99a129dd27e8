"""Attribute models: library metadata, per-entity records, and response shapes."""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator


COMMON_BUCKET = "common"

AttributeType = Literal["integer", "number", "string", "boolean", "enum", "array"]

# Loose type names models tend to emit, mapped onto AttributeType
_TYPE_ALIASES = {
    "int": "integer",
    "float": "number",
    "double": "number",
    "str": "string",
    "text": "string",
    "bool": "boolean",
    "list": "array",
}


def _normalize_type(value: Any) -> Any:
    if isinstance(value, str):
        lowered = value.strip().lower()
        return _TYPE_ALIASES.get(lowered, lowered)
    return value


NormalizedType = Annotated[AttributeType, BeforeValidator(_normalize_type)]


class AttributeRange(BaseModel):
    min: float
    max: float


class AttributeMeta(BaseModel):
    """Definition of an attribute as stored in the library."""

    model_config = ConfigDict(extra="ignore")

    type: NormalizedType
    description: str = ""
    reference: str | None = None
    values: list[str] | None = None
    range: AttributeRange | None = None

    def type_label(self) -> str:
        if self.range is not None:
            return f"{self.type} ({self.range.min:g}-{self.range.max:g})"
        if self.type == "enum" and self.values:
            return f"enum: {', '.join(self.values)}"
        return self.type


# =============================================================================
# Per-entity attribute records
# =============================================================================


class _AttributeRecordBase(BaseModel):
    value: Any = None
    type: NormalizedType
    description: str = ""
    reference: str | None = None
    values: list[str] | None = None
    category: str

    def to_meta(self) -> AttributeMeta:
        return AttributeMeta(
            type=self.type,
            description=self.description,
            reference=self.reference,
            values=self.values,
        )


class KnownAttribute(_AttributeRecordBase):
    """Attribute whose metadata came from the library."""

    origin: Literal["known"] = "known"


class GeneratedAttribute(_AttributeRecordBase):
    """New attribute whose metadata was supplied by the model."""

    origin: Literal["generated"] = "generated"


class InferredAttribute(_AttributeRecordBase):
    """New attribute with fallback metadata inferred from its value."""

    origin: Literal["inferred"] = "inferred"
    needs_review: bool = True


AttributeRecord = Annotated[
    Union[KnownAttribute, GeneratedAttribute, InferredAttribute],
    Field(discriminator="origin"),
]


# =============================================================================
# Library
# =============================================================================


def _attributes_from_any(raw: Any) -> dict[str, Any]:
    """Accept either {name: meta} or [{name, ...meta}] for a category."""
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return dict(raw)
    if isinstance(raw, list):
        out = {}
        for entry in raw:
            if not isinstance(entry, dict) or "name" not in entry:
                raise ValueError(f"Attribute entry without a name: {entry!r}")
            meta = dict(entry)
            out[meta.pop("name")] = meta
        return out
    raise ValueError(f"Unsupported attribute collection: {type(raw).__name__}")


class AttributeLibrary(BaseModel):
    """Per-category catalogue of known attributes.

    The "common" bucket is merged into every category's view. Input may be
    the mapping form ``{category: {attr: meta}}`` or the list form
    ``[{"name": category, "attributes": [...]}]``.
    """

    categories: dict[str, dict[str, AttributeMeta]] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _coerce_input(cls, data: Any) -> Any:
        if isinstance(data, AttributeLibrary):
            return data
        if data is None:
            return {"categories": {}}
        if isinstance(data, dict) and set(data) == {"categories"}:
            data = data["categories"]

        categories: dict[str, dict[str, Any]] = {}
        if isinstance(data, list):
            for entry in data:
                if not isinstance(entry, dict) or "name" not in entry:
                    raise ValueError(f"Category entry without a name: {entry!r}")
                categories[entry["name"]] = _attributes_from_any(
                    entry.get("attributes")
                )
        elif isinstance(data, dict):
            for name, body in data.items():
                if isinstance(body, dict) and set(body) == {"attributes"}:
                    body = body["attributes"]
                categories[name] = _attributes_from_any(body)
        else:
            raise ValueError(f"Unsupported library format: {type(data).__name__}")
        return {"categories": categories}

    def category_names(self) -> list[str]:
        """Categories an entity can belong to (the common bucket excluded)."""
        return [name for name in self.categories if name != COMMON_BUCKET]

    def available_for(self, category: str) -> dict[str, AttributeMeta]:
        """Combined view: common-bucket entries plus category-specific ones.

        Category-specific definitions win on a name clash.
        """
        combined = dict(self.categories.get(COMMON_BUCKET, {}))
        combined.update(self.categories.get(category, {}))
        return combined

    def is_known(self, category: str, name: str) -> bool:
        return name in self.available_for(category)

    def absorb(self, new_attributes: dict[str, _AttributeRecordBase]) -> list[str]:
        """Add newly discovered attributes to their categories.

        Returns:
            Names actually added (already-known names are skipped).
        """
        added = []
        for name, record in new_attributes.items():
            bucket = self.categories.setdefault(record.category, {})
            if name in bucket:
                continue
            bucket[name] = record.to_meta()
            added.append(name)
        return added


# =============================================================================
# Attribute-stage response shapes
# =============================================================================


class StructuredAttributeResponse(BaseModel):
    """``{attributes, attributeMetadata}`` response (preferred)."""

    model_config = ConfigDict(populate_by_name=True)

    shape: Literal["structured"] = "structured"
    attributes: dict[str, Any]
    attribute_metadata: dict[str, Any] = Field(
        default_factory=dict, alias="attributeMetadata"
    )


class FlatAttributeResponse(BaseModel):
    """Legacy flat ``{name: value}`` response."""

    shape: Literal["flat"] = "flat"
    values: dict[str, Any]


AttributeResponse = Annotated[
    Union[StructuredAttributeResponse, FlatAttributeResponse],
    Field(discriminator="shape"),
]
