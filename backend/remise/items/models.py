from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from remise.db.base import Base


class Item(Base):
    __tablename__ = "items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # fixed at creation; there is no cross-tenant transfer
    tenant_id: Mapped[str] = mapped_column(String(64), ForeignKey("tenants.id"), nullable=False, index=True)
    owner_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id"), nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    serial_number: Mapped[str | None] = mapped_column(String(128), nullable=True)
    category: Mapped[str] = mapped_column(String(64), nullable=False, default="other")

    purchase_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    purchase_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    estimated_value: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    date_last_seen: Mapped[str | None] = mapped_column(String(32), nullable=True)
    location_last_seen: Mapped[str | None] = mapped_column(String(255), nullable=True)

    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )


Index("ix_items_tenant_created_at", Item.tenant_id, Item.created_at)
