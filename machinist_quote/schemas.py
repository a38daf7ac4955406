import math
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .catalog import (
    DEFAULT_FINISH,
    DEFAULT_LEAD_TIME,
    DEFAULT_MATERIAL,
    DEFAULT_QUANTITY,
    FINISHES,
    LEAD_TIMES,
    MATERIALS,
)


def coerce_quantity(value: Any) -> int:
    """
    Coerce raw quantity input to a positive integer.

    "12" → 12, 3.7 → 3, "" / "abc" / None / 0 / -4 → 1. A form field is
    never allowed to produce a request for less than one part.
    """
    if isinstance(value, bool) or value is None:
        return DEFAULT_QUANTITY
    if isinstance(value, float):
        if not math.isfinite(value):
            return DEFAULT_QUANTITY
        value = int(value)
    elif not isinstance(value, int):
        text = str(value).strip()
        try:
            value = int(text)
        except ValueError:
            try:
                parsed = float(text)
            except ValueError:
                return DEFAULT_QUANTITY
            if not math.isfinite(parsed):
                return DEFAULT_QUANTITY
            value = int(parsed)
    return value if value >= 1 else DEFAULT_QUANTITY


class _CamelModel(BaseModel):
    # json.loads accepts Infinity and NaN; a Quote must stay JSON-serializable
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True,
                              allow_inf_nan=False)


class QuoteOptions(_CamelModel):
    """One immutable snapshot of the options form. Edits replace it wholesale."""
    quantity: int = DEFAULT_QUANTITY
    material: str = DEFAULT_MATERIAL
    finish: str = DEFAULT_FINISH
    lead_time: str = DEFAULT_LEAD_TIME

    @field_validator("quantity", mode="before")
    @classmethod
    def _coerce_quantity(cls, value):
        return coerce_quantity(value)

    @field_validator("material")
    @classmethod
    def _known_material(cls, value):
        if value not in MATERIALS:
            raise ValueError(f"Unknown material '{value}'. Choose one of: {', '.join(MATERIALS)}")
        return value

    @field_validator("finish")
    @classmethod
    def _known_finish(cls, value):
        if value not in FINISHES:
            raise ValueError(f"Unknown finish '{value}'. Choose one of: {', '.join(FINISHES)}")
        return value

    @field_validator("lead_time")
    @classmethod
    def _known_lead_time(cls, value):
        if value not in LEAD_TIMES:
            raise ValueError(f"Unknown lead time '{value}'. Choose one of: {', '.join(LEAD_TIMES)}")
        return value


class CostItem(_CamelModel):
    item: str
    cost: float = Field(ge=0)


class Quote(_CamelModel):
    """Structured estimate exactly as the model returned it."""
    part_name: str
    material: str
    manufacturing_process: str
    finish: str
    cost_breakdown: List[CostItem]
    total_cost: float = Field(ge=0)
    lead_time: str
    assumptions: List[str]


class CadFile(BaseModel):
    """Metadata of an uploaded CAD file. The bytes themselves are not kept."""
    model_config = ConfigDict(frozen=True)

    name: str
    size: int = Field(ge=0)
    content_type: Optional[str] = None

    @property
    def size_kb(self) -> float:
        return self.size / 1024
