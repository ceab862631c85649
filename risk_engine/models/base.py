"""Base Pydantic models with common functionality."""

from pydantic import BaseModel as PydanticBaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseModel(PydanticBaseModel):
    """Base model for mutable engine state (patterns, rules, alerts)."""

    model_config = ConfigDict(
        # Enable validation on assignment
        validate_assignment=True,
        # Validate default values
        validate_default=True,
        # Reject unknown fields
        extra="forbid",
        # Accept both field names and camelCase aliases
        alias_generator=to_camel,
        populate_by_name=True,
    )


class FrozenModel(PydanticBaseModel):
    """Base model for immutable snapshots (contexts, assessments)."""

    model_config = ConfigDict(
        frozen=True,
        validate_default=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )
