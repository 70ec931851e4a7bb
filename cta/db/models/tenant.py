from __future__ import annotations

from typing import List

from sqlalchemy import String, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .mixins import Base, TimestampMixin, UUIDMixin


class Tenant(UUIDMixin, TimestampMixin, Base):
    """ A customer of the platform. Each tenant picks one template per content type. """
    __tablename__ = "tenant"

    name: Mapped[str] = mapped_column(String(50), nullable=False)

    mappings: Mapped[List["TenantTemplate"]] = relationship(
        back_populates="tenant",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_tenant_name", "name"),
    )

    def __repr__(self) -> str:
        return f"<Tenant id={self.id} name={self.name!r}>"


class TenantTemplate(TimestampMixin, Base):
    """ Which template a tenant uses for a content type. At most one per (tenant, content). """
    __tablename__ = "tenant_template"

    tenant_id: Mapped[str] = mapped_column(
        ForeignKey("tenant.id", ondelete="CASCADE"), primary_key=True
    )
    content_id: Mapped[str] = mapped_column(
        ForeignKey("content.id", ondelete="CASCADE"), primary_key=True
    )
    template_id: Mapped[str] = mapped_column(
        ForeignKey("template.id", ondelete="CASCADE"), nullable=False, index=True
    )

    tenant: Mapped["Tenant"] = relationship(back_populates="mappings")

    def __repr__(self) -> str:
        return f"<TenantTemplate tenant={self.tenant_id} content={self.content_id} template={self.template_id}>"
