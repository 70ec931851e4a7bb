from __future__ import annotations

import logging

from cta.db.manager import DatabaseManager
from cta.db.models import Content
from cta.db.repositories import ContentRepo, TemplateRepo
from cta.db.services.names import clean_name

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_NAME = "default"


# Domain errors
class ContentNotFound(Exception): ...


class ContentService:
    """ Content types. Every content is created together with its default template. """
    def __init__(self, db: DatabaseManager):
        self.db = db
        self.content_repo = ContentRepo()
        self.template_repo = TemplateRepo()

    def _resolve(self, s, content_id: str) -> Content:
        content = self.content_repo.get(s, content_id)
        if content is None:
            raise ContentNotFound(content_id)
        return content

    def list(self) -> list[Content]:
        with self.db.session() as s:
            return self.content_repo.list(s)

    def get(self, content_id: str) -> Content | None:
        with self.db.session() as s:
            return self.content_repo.get(s, content_id)

    def create(self, name: str) -> Content:
        nm = clean_name(name, "Content")
        with self.db.session() as s:
            content = self.content_repo.create(s, nm)
            self.template_repo.create(s, content.id, DEFAULT_TEMPLATE_NAME, is_default=True)
            logger.info("Created content %s (%s)", nm, content.id)
            return content

    def rename(self, content_id: str, name: str) -> Content:
        nm = clean_name(name, "Content")
        with self.db.session() as s:
            content = self._resolve(s, content_id)
            self.content_repo.rename(s, content, nm)
            return content

    def delete(self, content_id: str) -> None:
        """ Delete the content; its templates and tenant links go with it. """
        with self.db.session() as s:
            content = self._resolve(s, content_id)
            self.content_repo.delete(s, content)
            logger.info("Deleted content %s", content_id)
