from __future__ import annotations
from datetime import datetime
from sqlalchemy import Integer, String, DateTime, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column
from cmskit.db.session import Base

class Block(Base):
    """Content block attached to any module record."""
    __tablename__ = "blocks"
    __table_args__ = (Index("ix_blocks_blockable", "blockable_type", "blockable_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    blockable_type: Mapped[str] = mapped_column(String(255), nullable=False)
    blockable_id: Mapped[int] = mapped_column(Integer, nullable=False)

    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    type: Mapped[str] = mapped_column(String(255), nullable=False)
    editor_name: Mapped[str] = mapped_column(String(60), default="default", nullable=False)
    content: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "position": self.position,
            "editor_name": self.editor_name,
            "content": self.content or {},
        }
