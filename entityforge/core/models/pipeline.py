"""Pipeline result types: stage outcomes, timing, and the creation result."""

from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from ..errors import GenerationError
from .attributes import AttributeRecord
from .entity import GeneratedEntity


T = TypeVar("T")

StageStatus = Literal["ok", "degraded", "fatal"]


class StageOutcome(BaseModel, Generic[T]):
    """Tri-state result of one pipeline stage.

    ``ok`` carries a value; ``degraded`` carries an empty-but-usable value and
    the error that caused it; ``fatal`` carries only the error.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    stage: str
    status: StageStatus = "ok"
    value: T | None = None
    elapsed_ms: float = 0.0
    debug: dict[str, Any] = Field(default_factory=dict)
    error: Exception | None = Field(default=None, exclude=True)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def degraded(self) -> bool:
        return self.status == "degraded"

    @property
    def fatal(self) -> bool:
        return self.status == "fatal"

    def unwrap(self) -> T:
        """Return the value, raising GenerationError for a fatal outcome."""
        if self.fatal:
            raise GenerationError(self.stage, self.error, {self.stage: self.debug})
        return self.value


class ReconciledAttributes(BaseModel):
    """Payload of the attribute stage."""

    attributes: dict[str, AttributeRecord] = Field(default_factory=dict)
    new_attributes: dict[str, AttributeRecord] = Field(default_factory=dict)
    metadata_missing: list[str] = Field(default_factory=list)


class Timing(BaseModel):
    """Per-stage elapsed time in milliseconds; total is the sum of stages."""

    context: float = 0.0
    base_entity: float = 0.0
    attributes: float = 0.0
    image: float = 0.0

    @property
    def total(self) -> float:
        return round(self.context + self.base_entity + self.attributes + self.image, 2)

    def to_dict(self) -> dict[str, float]:
        return {
            "context": self.context,
            "baseEntity": self.base_entity,
            "attributes": self.attributes,
            "image": self.image,
            "total": self.total,
        }


class CreationResult(BaseModel):
    """Everything a successful createEntity call returns."""

    entity: GeneratedEntity
    new_attributes: dict[str, AttributeRecord] = Field(default_factory=dict)
    timing: Timing = Field(default_factory=Timing)
    debug_trace: dict[str, Any] = Field(default_factory=dict)
    degraded_stages: list[str] = Field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity": self.entity.to_dict(),
            "newAttributes": {
                name: record.model_dump(mode="json")
                for name, record in self.new_attributes.items()
            },
            "timing": self.timing.to_dict(),
            "debugTrace": self.debug_trace,
            "degradedStages": list(self.degraded_stages),
        }
