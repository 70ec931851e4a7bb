from __future__ import annotations

from sqlalchemy import select, delete
from sqlalchemy.orm import Session

from cta.db.models import Tenant, TenantTemplate


class TenantRepo:
    def list(self, s: Session) -> list[Tenant]:
        return list(s.execute(select(Tenant).order_by(Tenant.name, Tenant.id)).scalars().all())

    def get(self, s: Session, tenant_id: str) -> Tenant | None:
        return s.get(Tenant, tenant_id)

    def create(self, s: Session, name: str) -> Tenant:
        t = Tenant(name=name)
        s.add(t)
        s.flush()
        return t

    def rename(self, s: Session, tenant: Tenant, name: str) -> None:
        tenant.name = name
        s.flush()

    def delete(self, s: Session, tenant: Tenant) -> None:
        s.delete(tenant)
        s.flush()


class MappingRepo:
    """ Tenant -> (content -> template) links. """
    def for_tenant(self, s: Session, tenant_id: str) -> list[TenantTemplate]:
        return list(s.execute(
            select(TenantTemplate).where(TenantTemplate.tenant_id == tenant_id)
        ).scalars().all())

    def get(self, s: Session, tenant_id: str, content_id: str) -> TenantTemplate | None:
        return s.get(TenantTemplate, (tenant_id, content_id))

    def upsert(self, s: Session, tenant_id: str, content_id: str, template_id: str) -> TenantTemplate:
        row = self.get(s, tenant_id, content_id)
        if row is None:
            row = TenantTemplate(tenant_id=tenant_id, content_id=content_id, template_id=template_id)
            s.add(row)
        else:
            row.template_id = template_id
        s.flush()
        return row

    def remove(self, s: Session, tenant_id: str, content_id: str) -> None:
        s.execute(delete(TenantTemplate).where(
            TenantTemplate.tenant_id == tenant_id, TenantTemplate.content_id == content_id
        ))

    def count_for_template(self, s: Session, template_id: str) -> int:
        return len(s.execute(
            select(TenantTemplate.tenant_id).where(TenantTemplate.template_id == template_id)
        ).all())

    def remove_for_template(self, s: Session, template_id: str) -> None:
        s.execute(delete(TenantTemplate).where(TenantTemplate.template_id == template_id))
