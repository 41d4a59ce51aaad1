from fastapi import APIRouter, Depends, Response
from textock.modules.auth.schemas import CurrentUser
from textock.modules.templates.schemas import (
    TemplateCreate, TemplateUpdate, TemplateResponse, ContentCheckRequest,
    ContentCheckResponse, QuotaResponse, RenderRequest, RenderResponse,
)
from textock.modules.templates.service import TemplateService
from textock.modules.templates.variables import check_content
from textock.core.dependencies import get_template_service, require_user
from typing import List, Literal, Optional

router = APIRouter(prefix="/templates", tags=["templates"])


@router.get("", response_model=List[TemplateResponse])
async def list_templates(
    category: Optional[str] = None,
    tag: Optional[str] = None,
    sort: Literal["updated_at", "created_at", "title"] = "updated_at",
    direction: Literal["asc", "desc"] = "desc",
    user: CurrentUser = Depends(require_user),
    service: TemplateService = Depends(get_template_service),
):
    """List the caller's templates, optionally filtered by category or tag."""
    return service.list_templates(user.id, category=category, tag=tag, sort=sort, direction=direction)


@router.get("/categories", response_model=List[str])
async def list_categories(
    user: CurrentUser = Depends(require_user),
    service: TemplateService = Depends(get_template_service),
):
    return service.list_categories(user.id)


@router.get("/quota", response_model=QuotaResponse)
async def get_quota(
    user: CurrentUser = Depends(require_user),
    service: TemplateService = Depends(get_template_service),
):
    """Template usage against the account limit"""
    return service.get_quota(user.id)


@router.post("/check", response_model=ContentCheckResponse, dependencies=[Depends(require_user)])
async def check_template_content(payload: ContentCheckRequest):
    """Validate draft content and list the variables it declares."""
    return check_content(payload.content)


@router.post("", response_model=TemplateResponse, status_code=201)
async def create_template(
    template_data: TemplateCreate,
    user: CurrentUser = Depends(require_user),
    service: TemplateService = Depends(get_template_service),
):
    """Create a new template"""
    return service.create_template(template_data, user.id)


@router.get("/{template_id}", response_model=TemplateResponse)
async def get_template(
    template_id: str,
    user: CurrentUser = Depends(require_user),
    service: TemplateService = Depends(get_template_service),
):
    """Get template by ID."""
    return service.get_template(template_id, user.id)


@router.put("/{template_id}", response_model=TemplateResponse)
async def update_template(
    template_id: str,
    template_data: TemplateUpdate,
    user: CurrentUser = Depends(require_user),
    service: TemplateService = Depends(get_template_service),
):
    """Update template"""
    return service.update_template(template_id, template_data, user.id)


@router.delete("/{template_id}", status_code=204)
async def delete_template(
    template_id: str,
    user: CurrentUser = Depends(require_user),
    service: TemplateService = Depends(get_template_service),
):
    """Delete template"""
    service.delete_template(template_id, user.id)
    return Response(status_code=204)


@router.post("/{template_id}/render", response_model=RenderResponse)
async def render_template(
    template_id: str,
    payload: RenderRequest,
    user: CurrentUser = Depends(require_user),
    service: TemplateService = Depends(get_template_service),
):
    """Fill in variable values. Unfilled placeholders stay in the output."""
    return service.render_template(template_id, payload.values, user.id)


@router.post("/{template_id}/download")
async def download_template(
    template_id: str,
    payload: RenderRequest,
    user: CurrentUser = Depends(require_user),
    service: TemplateService = Depends(get_template_service),
):
    """Rendered template as a file attachment"""
    rendered = service.render_template(template_id, payload.values, user.id)
    media_type = "text/markdown" if rendered.filename.endswith(".md") else "text/plain"
    return Response(
        content=rendered.content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{rendered.filename}"'},
    )
