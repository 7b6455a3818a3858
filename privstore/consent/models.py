"""
Consent data models for privstore
Per-category permission record persisted next to the data it gates
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from ..constants import CONSENT_RECORD_VERSION, ConsentCategories
from ..utils.clock import ms_to_datetime


class ConsentRecord(BaseModel):
    """Current consent decision; granted_at is None until the user decides"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    version: int = Field(default=CONSENT_RECORD_VERSION)
    granted_at: Optional[int] = Field(
        default=None, alias="grantedAt",
        description="Epoch milliseconds of the latest decision"
    )

    storage: bool = Field(default=False)
    geolocation: bool = Field(default=False)
    analytics: bool = Field(default=False)
    notifications: bool = Field(default=False)

    def is_decided(self) -> bool:
        return self.granted_at is not None

    def allows(self, category: str) -> bool:
        if category not in ConsentCategories.ALL:
            return False
        return getattr(self, category) is True

    def granted_categories(self) -> list[str]:
        return [c for c in ConsentCategories.ALL if getattr(self, c)]

    @property
    def granted_at_datetime(self) -> Optional[datetime]:
        if self.granted_at is None:
            return None
        return ms_to_datetime(self.granted_at)

    def to_storage(self) -> str:
        return self.model_dump_json(by_alias=True)
