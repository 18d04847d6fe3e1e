"""
Booth and product schemas
"""
import re
from decimal import Decimal
from typing import Optional, Tuple

from pydantic import Field

from boothboard.schemas.base import DomainModel, PayloadModel

_DIGITS = re.compile(r"(\d+)")


class Booth(DomainModel):
    """
    A vendor stall managed by at most one staff account

    Attributes:
        id: Primary key
        booth_number: Free-text number shown on the venue map (e.g. "7", "12B")
        booth_name: Display name
        description: Optional description
        staff_id: Account ID of the assigned staff member, if any
    """
    id: str = Field(..., min_length=1)
    booth_number: str = Field(...)
    booth_name: str = Field(...)
    description: str = Field(default="")
    staff_id: Optional[str] = Field(None)

    @property
    def sort_key(self) -> Tuple:
        """
        Natural ordering key so that booth "7" sorts before booth "12"
        """
        parts = _DIGITS.split(self.booth_number.strip().lower())
        return tuple(
            (0, int(part), "") if part.isdigit() else (1, 0, part)
            for part in parts
            if part
        )


class BoothCreate(PayloadModel):
    booth_number: str = Field(..., min_length=1, description="Booth number")
    booth_name: str = Field(..., min_length=1, description="Booth name")
    description: str = Field(default="", description="Booth description")
    staff_id: Optional[str] = Field(None, description="Assigned staff account")


class BoothUpdate(PayloadModel):
    """
    Schema for updating a booth
    All fields are optional for partial updates; send staff_id=None to unassign
    """
    booth_number: Optional[str] = Field(None, min_length=1)
    booth_name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    staff_id: Optional[str] = None


class Product(DomainModel):
    id: str = Field(..., min_length=1)
    booth_id: str = Field(..., min_length=1)
    name: str = Field(...)
    price: Decimal = Field(..., description="Unit price in the venue's currency")
    is_out_of_stock: bool = Field(default=False)


class ProductCreate(PayloadModel):
    booth_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    price: Decimal = Field(...)
    is_out_of_stock: bool = False


class ProductUpdate(PayloadModel):
    name: Optional[str] = Field(None, min_length=1)
    price: Optional[Decimal] = None
    is_out_of_stock: Optional[bool] = None
