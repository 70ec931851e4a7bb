import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from cta.db.models import Template, TenantTemplate
from cta.db.services import (
    ContentService, TemplateService, TenantService, TemplateNotFound, DefaultTemplateProtected,
    TemplateInUse, TenantNotFound, ContentNotFound
)
from cta.db.services.content_service import DEFAULT_TEMPLATE_NAME


@pytest.fixture()
def services(dbm):
    return ContentService(dbm), TemplateService(dbm), TenantService(dbm)


# --- Content

def test_content_is_created_with_default_template(services):
    contents, templates, _ = services
    c = contents.create("  Articles ")
    assert c.name == "Articles"
    ts = templates.list_by_content(c.id)
    assert [(t.name, t.is_default) for t in ts] == [(DEFAULT_TEMPLATE_NAME, 1)]
    assert ts[0].data is None


@pytest.mark.parametrize("name", ["", "   ", "x" * 51])
def test_names_are_validated(services, name):
    contents, _, tenants = services
    with pytest.raises(ValueError):
        contents.create(name)
    with pytest.raises(ValueError):
        tenants.create(name)


def test_rename_and_delete_content(services, session):
    contents, templates, tenants = services
    c = contents.create("Articles")
    extra = templates.create(c.id, "Compact")
    t = tenants.create("Acme")
    tenants.set_mapping(t.id, c.id, extra.id)

    contents.rename(c.id, "Posts")
    assert [x.name for x in contents.list()] == ["Posts"]

    contents.delete(c.id)
    assert contents.list() == []
    # Templates and tenant links go with the content
    assert session.execute(select(Template)).scalars().all() == []
    assert session.execute(select(TenantTemplate)).scalars().all() == []
    assert tenants.get_mappings(t.id) == {}

    with pytest.raises(ContentNotFound):
        contents.delete("missing")


# --- Templates

def test_first_template_becomes_default(services, session):
    contents, templates, _ = services
    c = contents.create("Pages")
    # Start from a content without templates
    for t in templates.list_by_content(c.id):
        session.delete(t)
    session.flush()

    first = templates.create(c.id, "one")
    second = templates.create(c.id, "two")
    assert first.is_default == 1
    assert second.is_default == 0

    with pytest.raises(ContentNotFound):
        templates.create("missing", "x")


def test_update_data_and_name(services):
    contents, templates, _ = services
    c = contents.create("Pages")
    t = templates.list_by_content(c.id)[0]

    templates.update(t.id, data='[{"id": "a", "key": "k"}]')
    assert templates.get(t.id).data == '[{"id": "a", "key": "k"}]'
    templates.update(t.id, name="main")
    assert templates.get(t.id).data == '[{"id": "a", "key": "k"}]'  # untouched
    templates.update(t.id, data=None)
    assert templates.get(t.id).data is None
    assert templates.get(t.id).name == "main"

    with pytest.raises(TemplateNotFound):
        templates.update("missing", data=None)


def test_duplicate_template(services):
    contents, templates, _ = services
    c = contents.create("Pages")
    src = templates.list_by_content(c.id)[0]
    templates.update(src.id, data="[]")

    copy = templates.duplicate(src.id)
    assert copy.id != src.id
    assert copy.name == DEFAULT_TEMPLATE_NAME + " (copy)"
    assert copy.is_default == 0
    assert copy.data == "[]"

    long = templates.create(c.id, "y" * 50)
    assert len(templates.duplicate(long.id).name) == 50


def test_set_default_moves_the_flag(services):
    contents, templates, _ = services
    c = contents.create("Pages")
    old = templates.list_by_content(c.id)[0]
    new = templates.create(c.id, "fancy")

    templates.set_default(new.id)
    flags = {t.name: t.is_default for t in templates.list_by_content(c.id)}
    assert flags == {"fancy": 1, old.name: 0}


def test_only_one_default_per_content(services, session):
    contents, templates, _ = services
    c = contents.create("Pages")
    session.add(Template(content_id=c.id, name="rogue", is_default=1))
    with pytest.raises(IntegrityError):
        session.flush()


def test_delete_template_protection(services):
    contents, templates, tenants = services
    c = contents.create("Pages")
    default = templates.list_by_content(c.id)[0]
    used = templates.create(c.id, "used")
    free = templates.create(c.id, "free")
    t = tenants.create("Acme")
    tenants.set_mapping(t.id, c.id, used.id)

    with pytest.raises(DefaultTemplateProtected):
        templates.delete(default.id)
    with pytest.raises(TemplateInUse):
        templates.delete(used.id)
    assert templates.tenant_count(used.id) == 1

    templates.delete(free.id)
    assert [x.name for x in templates.list_by_content(c.id)] == [DEFAULT_TEMPLATE_NAME, "used"]

    with pytest.raises(TemplateNotFound):
        templates.delete(free.id)


# --- Tenants

def test_tenant_mappings(services):
    contents, templates, tenants = services
    pages = contents.create("Pages")
    posts = contents.create("Posts")
    page_tpl = templates.list_by_content(pages.id)[0]
    post_tpl = templates.create(posts.id, "wide")
    t = tenants.create("Acme")

    tenants.set_mapping(t.id, pages.id, page_tpl.id)
    tenants.set_mapping(t.id, posts.id, post_tpl.id)
    assert tenants.get_mappings(t.id) == {pages.id: page_tpl.id, posts.id: post_tpl.id}

    # Re-pointing replaces, None removes
    other = templates.create(pages.id, "alt")
    tenants.set_mapping(t.id, pages.id, other.id)
    assert tenants.get_mappings(t.id)[pages.id] == other.id
    tenants.set_mapping(t.id, pages.id, None)
    assert tenants.get_mappings(t.id) == {posts.id: post_tpl.id}

    # A template of another content is refused
    with pytest.raises(ValueError):
        tenants.set_mapping(t.id, pages.id, post_tpl.id)


def test_tenant_crud(services):
    _, _, tenants = services
    b = tenants.create("Beta")
    a = tenants.create("Alpha")
    assert [t.name for t in tenants.list()] == ["Alpha", "Beta"]

    tenants.rename(b.id, "Gamma")
    assert tenants.get(b.id).name == "Gamma"

    tenants.delete(a.id)
    assert [t.name for t in tenants.list()] == ["Gamma"]
    with pytest.raises(TenantNotFound):
        tenants.get_mappings(a.id)
    with pytest.raises(TenantNotFound):
        tenants.rename("missing", "x")


def test_deleting_tenant_removes_its_mappings(services, session):
    contents, templates, tenants = services
    c = contents.create("Pages")
    tpl = templates.list_by_content(c.id)[0]
    t = tenants.create("Acme")
    tenants.set_mapping(t.id, c.id, tpl.id)

    tenants.delete(t.id)
    assert session.execute(select(TenantTemplate)).scalars().all() == []
    assert templates.tenant_count(tpl.id) == 0
