"""
Base schemas shared by every request and response model.

Wire format is camelCase; snake_case names are accepted on input too.
"""

from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

# Decimal in Python, plain number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class StandardizedModel(BaseModel):
    """Base model with camelCase aliases and enum values."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        from_attributes=True,
    )


class RequestModel(StandardizedModel):
    """Request bodies reject unknown fields."""

    model_config = ConfigDict(extra="forbid")
