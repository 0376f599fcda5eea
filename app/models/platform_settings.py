from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer

from app.db.base import Base


DEFAULT_IMAGE_TOKEN_PRICE = 25
DEFAULT_VIDEO_TOKEN_PRICE = 45


class PlatformSettings(Base):
    """Platform-wide pricing (single row, id=1). Edited by operators, read by billing."""

    __tablename__ = "platform_settings"

    id = Column(Integer, primary_key=True, default=1)
    image_token_price = Column(Integer, nullable=False, default=DEFAULT_IMAGE_TOKEN_PRICE)
    video_token_price = Column(Integer, nullable=False, default=DEFAULT_VIDEO_TOKEN_PRICE)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
