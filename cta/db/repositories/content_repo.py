from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from cta.db.models import Content, Template


class ContentRepo:
    def list(self, s: Session) -> list[Content]:
        return list(s.execute(select(Content).order_by(Content.name, Content.id)).scalars().all())

    def get(self, s: Session, content_id: str) -> Content | None:
        return s.get(Content, content_id)

    def create(self, s: Session, name: str) -> Content:
        c = Content(name=name)
        s.add(c)
        s.flush()
        return c

    def rename(self, s: Session, content: Content, name: str) -> None:
        content.name = name
        s.flush()

    def delete(self, s: Session, content: Content) -> None:
        s.delete(content)
        s.flush()


class TemplateRepo:
    def list(self, s: Session) -> list[Template]:
        return list(s.execute(
            select(Template).order_by(Template.content_id, Template.is_default.desc(), Template.name)
        ).scalars().all())

    def list_by_content(self, s: Session, content_id: str) -> list[Template]:
        return list(s.execute(
            select(Template)
            .where(Template.content_id == content_id)
            .order_by(Template.is_default.desc(), Template.name, Template.id)
        ).scalars().all())

    def get(self, s: Session, template_id: str) -> Template | None:
        return s.get(Template, template_id)

    def get_default(self, s: Session, content_id: str) -> Template | None:
        return s.execute(
            select(Template).where(Template.content_id == content_id, Template.is_default == 1)
        ).scalar_one_or_none()

    def count_for_content(self, s: Session, content_id: str) -> int:
        return len(s.execute(select(Template.id).where(Template.content_id == content_id)).all())

    def create(self, s: Session, content_id: str, name: str, *, data: str | None = None,
               is_default: bool = False) -> Template:
        t = Template(content_id=content_id, name=name, data=data, is_default=1 if is_default else 0)
        s.add(t)
        s.flush()
        return t

    def clear_default(self, s: Session, content_id: str) -> None:
        s.execute(
            update(Template).where(Template.content_id == content_id).values(is_default=0)
        )

    def delete(self, s: Session, template: Template) -> None:
        s.delete(template)
        s.flush()
