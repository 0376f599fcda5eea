"""Platform pricing: token price per billable operation. Read by billing, edited by operators."""
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.platform_settings import PlatformSettings


class BillableOperation(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


_PRICE_FIELDS = {
    BillableOperation.IMAGE: "image_token_price",
    BillableOperation.VIDEO: "video_token_price",
}


class PlatformSettingsService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self) -> PlatformSettings | None:
        return self.db.query(PlatformSettings).filter(PlatformSettings.id == 1).first()

    def get_or_create(self) -> PlatformSettings:
        row = self.get()
        if row:
            return row
        try:
            row = PlatformSettings(id=1)
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
            return row
        except IntegrityError:
            self.db.rollback()
            return self.get()

    def price_for(self, operation: BillableOperation) -> int:
        row = self.get_or_create()
        return int(getattr(row, _PRICE_FIELDS[BillableOperation(operation)]))

    def as_dict(self) -> dict[str, Any]:
        row = self.get_or_create()
        return {
            "image_token_price": row.image_token_price,
            "video_token_price": row.video_token_price,
            "updated_at": row.updated_at.isoformat() if row.updated_at else None,
        }

    def update(self, data: dict[str, Any]) -> dict[str, Any]:
        row = self.get_or_create()
        for field in _PRICE_FIELDS.values():
            if data.get(field) is not None:
                value = int(data[field])
                if value < 0:
                    raise ValueError(f"{field} must be non-negative")
                setattr(row, field, value)
        row.updated_at = datetime.now(timezone.utc)
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return self.as_dict()
