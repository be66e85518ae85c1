"""
Shared pydantic plumbing for the office models.

- ``CamelModel`` serializes with the camelCase field names used on the wire
  (``officeId``, ``inService``) while accepting either spelling on input.
- ``OfficeId`` runs the Office Identifier Normalizer during validation, so a
  raw identifier never survives into a model.
"""

from datetime import datetime
from typing import Annotated
from zoneinfo import ZoneInfo

from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel

from office_scheduler import config
from office_scheduler.office_id import standardize_office_id


def _normalize_office_id(value):
    if value is None:
        return value
    return standardize_office_id(str(value))


OfficeId = Annotated[str, BeforeValidator(_normalize_office_id)]


def ensure_aware(value: datetime) -> datetime:
    """Naive datetimes are wall-clock times of the practice."""
    if value.tzinfo is None:
        return value.replace(tzinfo=ZoneInfo(config.PRACTICE_TIMEZONE))
    return value


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_payload(self) -> dict:
        """JSON-ready dict with wire (camelCase) field names."""
        return self.model_dump(mode='json', by_alias=True, exclude_none=True)
