from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from fastapi import HTTPException

from textock.modules.editor.workspace import TemplateWorkspace
from textock.modules.templates.schemas import TemplateCreate, TemplateResponse, TemplateUpdate


@pytest_asyncio.fixture
async def workspace(template_service, session_context):
    workspace = TemplateWorkspace(template_service, session_context)
    await workspace.load()
    return workspace


@pytest.mark.asyncio
async def test_load_reads_owned_templates(template_service, session_context, fake_supabase):
    fake_supabase.seed_template(title="Mine")
    fake_supabase.seed_template(user_id="someone-else", title="Theirs")

    workspace = TemplateWorkspace(template_service, session_context)
    await workspace.load()

    assert [t.title for t in workspace.templates] == ["Mine"]
    assert session_context.loading is False


def test_requires_signed_in_session(template_service):
    from textock.modules.auth.schemas import SessionContext

    with pytest.raises(ValueError):
        TemplateWorkspace(template_service, SessionContext())


@pytest.mark.asyncio
async def test_create_is_added_after_backend_confirms(workspace):
    created = await workspace.create(TemplateCreate(title="New", content="Hi {{x}}"))
    assert workspace.templates[0].id == created.id
    assert workspace.quota().current == 1


@pytest.mark.asyncio
async def test_failed_create_leaves_collection_untouched(workspace, fake_supabase):
    fake_supabase.fail_on.add("insert")
    with pytest.raises(HTTPException):
        await workspace.create(TemplateCreate(title="New", content="Hi {{x}}"))
    assert workspace.templates == []


@pytest.mark.asyncio
async def test_create_at_limit_never_calls_backend(template_service, session_context, fake_supabase):
    for i in range(30):
        fake_supabase.seed_template(title=f"T{i}")
    workspace = TemplateWorkspace(template_service, session_context)
    await workspace.load()
    calls_before = len(fake_supabase.calls)

    with pytest.raises(HTTPException) as exc_info:
        await workspace.create(TemplateCreate(title="New", content="Hi {{x}}"))

    assert exc_info.value.status_code == 403
    assert "30" in exc_info.value.detail
    assert len(fake_supabase.calls) == calls_before


@pytest.mark.asyncio
async def test_update_replaces_by_id(template_service, session_context, fake_supabase):
    first = fake_supabase.seed_template(title="First")
    fake_supabase.seed_template(title="Second")
    workspace = TemplateWorkspace(template_service, session_context)
    await workspace.load()

    updated = await workspace.update(first["id"], TemplateUpdate(content="Bye {{y}}"))

    assert [t.title for t in workspace.templates] == ["Second", "First"]
    assert workspace.get(first["id"]) == updated
    assert [v.name for v in workspace.get(first["id"]).variables] == ["y"]


@pytest.mark.asyncio
async def test_older_copy_does_not_overwrite_newer(workspace):
    now = datetime.now(timezone.utc)
    newer = TemplateResponse(id="t1", title="Newer", content="x{{a}}", user_id="user-1", created_at=now, updated_at=now)
    older = newer.model_copy(update={"title": "Older", "updated_at": now - timedelta(seconds=5)})
    workspace.templates = [newer]

    assert workspace._replace(older) is newer
    assert workspace.templates == [newer]


@pytest.mark.asyncio
async def test_delete_removes_after_confirmation(template_service, session_context, fake_supabase):
    row = fake_supabase.seed_template()
    workspace = TemplateWorkspace(template_service, session_context)
    await workspace.load()

    await workspace.delete(row["id"])
    assert workspace.templates == []


@pytest.mark.asyncio
async def test_failed_delete_keeps_template(template_service, session_context, fake_supabase):
    fake_supabase.seed_template()
    workspace = TemplateWorkspace(template_service, session_context)
    await workspace.load()
    fake_supabase.fail_on.add("delete")

    with pytest.raises(HTTPException):
        await workspace.delete(workspace.templates[0].id)
    assert len(workspace.templates) == 1
