"""
Shared schema plumbing
Rows from the entity store are validated here before they enter view state
Reference: https://docs.pydantic.dev/latest/concepts/models/
"""
import logging
from typing import Any, Iterable, List, Mapping, Type, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from boothboard.core.exceptions import StoreError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound="DomainModel")


class DomainModel(BaseModel):
    """
    Base class for validated store rows
    Immutable so view state can hand out references safely
    """
    model_config = ConfigDict(
        frozen=True,
        extra="ignore",  # Stores may return columns we do not model
    )


class PayloadModel(BaseModel):
    """
    Base class for create/update payloads sent to the store
    """
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    def to_row(self, exclude_unset: bool = False) -> dict:
        # mode="json" keeps Decimal/datetime values transport-safe
        return self.model_dump(mode="json", exclude_unset=exclude_unset)


def parse_row(model: Type[ModelT], row: Mapping[str, Any], table: str) -> ModelT:
    """
    Validate a single store row into a domain object.

    Raises:
        StoreError: If the row does not match the expected shape
    """
    try:
        return model.model_validate(row)
    except ValidationError as e:
        logger.error(f"Invalid row from {table}: {e}")
        raise StoreError(f"Invalid row from {table}: {e.error_count()} validation error(s)") from e


def parse_rows(model: Type[ModelT], rows: Iterable[Mapping[str, Any]], table: str) -> List[ModelT]:
    return [parse_row(model, row, table) for row in rows]
