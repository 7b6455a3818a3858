"""
Storage data models for privstore
Entry metadata index and inventory snapshot
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class EntryMetadata(BaseModel):
    """Out-of-band bookkeeping for one entry"""
    model_config = ConfigDict(populate_by_name=True)

    size_bytes: int = Field(..., alias="sizeBytes")
    last_touched_at: int = Field(..., alias="lastTouchedAt", description="Epoch milliseconds")
    encrypted: bool = Field(default=False)


class InventoryEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    key: str
    size_kb: float = Field(..., alias="sizeKB")
    encrypted: bool = False
    age_days: Optional[int] = Field(default=None, alias="ageDays")


class Inventory(BaseModel):
    """Read-only usage snapshot consumed by the audit checklist"""
    model_config = ConfigDict(populate_by_name=True)

    total_bytes: int = Field(..., alias="totalBytes")
    ceiling_bytes: int = Field(..., alias="ceilingBytes")
    entries: List[InventoryEntry] = Field(default_factory=list)

    @property
    def used_percent(self) -> int:
        if self.ceiling_bytes <= 0:
            return 100
        return round(self.total_bytes / self.ceiling_bytes * 100)


class ExportBundle(BaseModel):
    """Everything a caller can read, decrypted and deserialized"""
    model_config = ConfigDict(populate_by_name=True)

    exported_at: str = Field(..., alias="exportedAt")
    schema_version: int = Field(..., alias="schemaVersion")
    data: Dict[str, Any] = Field(default_factory=dict)


# key -> EntryMetadata, persisted as one JSON blob
MetadataIndex = TypeAdapter(Dict[str, EntryMetadata])
