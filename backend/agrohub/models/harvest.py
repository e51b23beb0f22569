"""Harvest records.

A harvest is owned through its crop (crop → field → farm → owner) or,
when it was recorded without a crop, directly through `owner_id`.
Both columns are nullable; see `agrohub.tenancy.scoping` for the
combined visibility rule.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agrohub.database import Base


class Harvest(Base):
    __tablename__ = "harvests"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    crop: Mapped[str] = mapped_column(String(255), nullable=False)  # crop name as entered
    date: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    yield_amount: Mapped[float] = mapped_column(Float, nullable=False)
    expected_yield: Mapped[float | None] = mapped_column(Float)
    harvest_area: Mapped[float | None] = mapped_column(Float)
    quality: Mapped[str | None] = mapped_column(String(30))
    notes: Mapped[str | None] = mapped_column(Text)

    crop_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("crops.id", ondelete="SET NULL"), index=True
    )
    owner_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    crop_record = relationship("Crop", back_populates="harvests")
