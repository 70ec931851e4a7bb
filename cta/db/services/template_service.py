from __future__ import annotations

import logging

from cta.db.manager import DatabaseManager
from cta.db.models import Template
from cta.db.repositories import ContentRepo, MappingRepo, TemplateRepo
from cta.db.services.content_service import ContentNotFound
from cta.db.services.names import clean_name

logger = logging.getLogger(__name__)

COPY_SUFFIX = " (copy)"
_UNSET = object()


# Domain errors
class TemplateNotFound(Exception): ...
class DefaultTemplateProtected(Exception): ...
class TemplateInUse(Exception): ...


class TemplateService:
    """ Templates of a content type.

    ``data`` is stored as an opaque string (the serialized node tree) and never inspected here.
    The default template of a content and templates that a tenant uses cannot be deleted.
    """
    def __init__(self, db: DatabaseManager):
        self.db = db
        self.template_repo = TemplateRepo()
        self.content_repo = ContentRepo()
        self.mapping_repo = MappingRepo()

    def _resolve(self, s, template_id: str) -> Template:
        template = self.template_repo.get(s, template_id)
        if template is None:
            raise TemplateNotFound(template_id)
        return template

    # ---------- Reads ----------
    def list(self) -> list[Template]:
        with self.db.session() as s:
            return self.template_repo.list(s)

    def list_by_content(self, content_id: str) -> list[Template]:
        with self.db.session() as s:
            return self.template_repo.list_by_content(s, content_id)

    def get(self, template_id: str) -> Template | None:
        with self.db.session() as s:
            return self.template_repo.get(s, template_id)

    def tenant_count(self, template_id: str) -> int:
        with self.db.session() as s:
            return self.mapping_repo.count_for_template(s, template_id)

    # ---------- Writes ----------
    def create(self, content_id: str, name: str, data: str | None = None) -> Template:
        """ Create a template. The first template of a content becomes its default. """
        nm = clean_name(name, "Template")
        with self.db.session() as s:
            if self.content_repo.get(s, content_id) is None:
                raise ContentNotFound(content_id)
            first = self.template_repo.count_for_content(s, content_id) == 0
            template = self.template_repo.create(s, content_id, nm, data=data, is_default=first)
            logger.info("Created template %s for content %s", template.id, content_id)
            return template

    def update(self, template_id: str, *, name: str | None = None, data=_UNSET) -> Template:
        """ Rename and/or replace the data. Pass data=None to store an empty tree. """
        nm = clean_name(name, "Template") if name is not None else None
        with self.db.session() as s:
            template = self._resolve(s, template_id)
            if nm is not None:
                template.name = nm
            if data is not _UNSET:
                template.data = data
            s.flush()
            return template

    def duplicate(self, template_id: str) -> Template:
        with self.db.session() as s:
            src = self._resolve(s, template_id)
            # Keep within the name limit after the suffix is added
            base = src.name[: 50 - len(COPY_SUFFIX)]
            copy = self.template_repo.create(s, src.content_id, base + COPY_SUFFIX, data=src.data)
            logger.info("Duplicated template %s as %s", template_id, copy.id)
            return copy

    def set_default(self, template_id: str) -> Template:
        with self.db.session() as s:
            template = self._resolve(s, template_id)
            if template.is_default:
                return template
            self.template_repo.clear_default(s, template.content_id)
            template.is_default = 1
            s.flush()
            return template

    def delete(self, template_id: str) -> None:
        with self.db.session() as s:
            template = self._resolve(s, template_id)
            if template.is_default:
                raise DefaultTemplateProtected(f"'{template.name}' is the default template")
            in_use = self.mapping_repo.count_for_template(s, template_id)
            if in_use:
                raise TemplateInUse(f"'{template.name}' is used by {in_use} tenant(s)")
            self.template_repo.delete(s, template)
            logger.info("Deleted template %s", template_id)
