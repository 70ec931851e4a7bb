from __future__ import annotations

import logging

from cta.db.manager import DatabaseManager
from cta.db.models import Tenant
from cta.db.repositories import ContentRepo, MappingRepo, TemplateRepo, TenantRepo
from cta.db.services.names import clean_name

logger = logging.getLogger(__name__)


# Domain errors
class TenantNotFound(Exception): ...


class TenantService:
    """ Tenants and the template each tenant uses per content type. """
    def __init__(self, db: DatabaseManager):
        self.db = db
        self.tenant_repo = TenantRepo()
        self.mapping_repo = MappingRepo()
        self.content_repo = ContentRepo()
        self.template_repo = TemplateRepo()

    def _resolve(self, s, tenant_id: str) -> Tenant:
        tenant = self.tenant_repo.get(s, tenant_id)
        if tenant is None:
            raise TenantNotFound(tenant_id)
        return tenant

    # ---------- Tenants ----------
    def list(self) -> list[Tenant]:
        with self.db.session() as s:
            return self.tenant_repo.list(s)

    def get(self, tenant_id: str) -> Tenant | None:
        with self.db.session() as s:
            return self.tenant_repo.get(s, tenant_id)

    def create(self, name: str) -> Tenant:
        nm = clean_name(name, "Tenant")
        with self.db.session() as s:
            tenant = self.tenant_repo.create(s, nm)
            logger.info("Created tenant %s (%s)", nm, tenant.id)
            return tenant

    def rename(self, tenant_id: str, name: str) -> Tenant:
        nm = clean_name(name, "Tenant")
        with self.db.session() as s:
            tenant = self._resolve(s, tenant_id)
            self.tenant_repo.rename(s, tenant, nm)
            return tenant

    def delete(self, tenant_id: str) -> None:
        with self.db.session() as s:
            tenant = self._resolve(s, tenant_id)
            self.tenant_repo.delete(s, tenant)
            logger.info("Deleted tenant %s", tenant_id)

    # ---------- Mappings ----------
    def get_mappings(self, tenant_id: str) -> dict[str, str]:
        """ {content_id: template_id} for the tenant. """
        with self.db.session() as s:
            self._resolve(s, tenant_id)
            return {m.content_id: m.template_id for m in self.mapping_repo.for_tenant(s, tenant_id)}

    def set_mapping(self, tenant_id: str, content_id: str, template_id: str | None) -> None:
        """ Point the tenant at a template of the content, or clear the link with None. """
        with self.db.session() as s:
            self._resolve(s, tenant_id)
            if template_id is None:
                self.mapping_repo.remove(s, tenant_id, content_id)
                return
            template = self.template_repo.get(s, template_id)
            if template is None or template.content_id != content_id:
                raise ValueError(f"Template {template_id} does not belong to content {content_id}")
            self.mapping_repo.upsert(s, tenant_id, content_id, template_id)
