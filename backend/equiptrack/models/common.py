"""Common types and enums shared across all models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base for request/response bodies: camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class EquipmentStatus(str, Enum):
    """Operational status of a piece of equipment."""

    good_to_go = "good_to_go"
    needs_maintenance = "needs_maintenance"
    out_of_order = "out_of_order"


class EquipmentCondition(str, Enum):
    """Physical condition of a piece of equipment."""

    excellent = "excellent"
    good = "good"
    fair = "fair"
    poor = "poor"


class SortOrder(str, Enum):
    asc = "asc"
    desc = "desc"


class MessageResponse(ApiModel):
    """Plain acknowledgement."""

    message: str


class Pagination(ApiModel):
    """Paging metadata for list responses."""

    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1, le=100)
    total: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)
