from __future__ import annotations

from typing import List, Optional

from sqlalchemy import String, Text, Integer, ForeignKey, Index, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .mixins import Base, TimestampMixin, UUIDMixin


class Content(UUIDMixin, TimestampMixin, Base):
    """ A content type. Its templates describe how that content is configured. """
    __tablename__ = "content"

    name: Mapped[str] = mapped_column(String(50), nullable=False)

    templates: Mapped[List["Template"]] = relationship(
        back_populates="content",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Template.created_at",
    )

    def __repr__(self) -> str:
        return f"<Content id={self.id} name={self.name!r}>"


class Template(UUIDMixin, TimestampMixin, Base):
    """ One template of a content type. ``data`` holds the serialized node tree, None when empty. """
    __tablename__ = "template"

    content_id: Mapped[str] = mapped_column(
        ForeignKey("content.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    is_default: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    data: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    content: Mapped["Content"] = relationship(back_populates="templates")

    __table_args__ = (
        Index("ix_template_content_id", "content_id"),
        # Only one default template per content
        Index("uq_template_content_default", "content_id", unique=True,
              sqlite_where=text("is_default = 1")),
    )

    def __repr__(self) -> str:
        return f"<Template id={self.id} name={self.name!r} default={bool(self.is_default)}>"
