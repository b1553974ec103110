"""Shared schema types"""

from decimal import Decimal
from typing import Annotated, Union

from pydantic import BaseModel, PlainSerializer


def _money_to_json(value: Decimal) -> Union[int, float]:
    if value == value.to_integral_value():
        return int(value)
    return float(value)


# Decimal internally; whole amounts go out as JSON integers
Money = Annotated[Decimal, PlainSerializer(_money_to_json, return_type=Union[int, float], when_used="json")]


class BaseSchema(BaseModel):
    """Base schema with common configuration"""

    class Config:
        from_attributes = True
