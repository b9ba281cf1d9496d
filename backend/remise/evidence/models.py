from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, LargeBinary, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from remise.db.base import Base

EVIDENCE_TYPES = ("photo", "video", "document")


class Evidence(Base):
    """Photo, video or document attached to an item.

    Evidence carries no tenant column; its scope is always the parent item's.
    """

    __tablename__ = "evidence"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_id: Mapped[int] = mapped_column(Integer, ForeignKey("items.id"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False)

    storage_id: Mapped[str | None] = mapped_column(String(512), nullable=True)
    original_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    mime_type: Mapped[str | None] = mapped_column(String(128), nullable=True)
    file_size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    # small documents are kept inline instead of on the media provider
    content: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True, deferred=True)

    uploaded_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
