from supabase import Client
from textock.config import settings
from textock.modules.templates.schemas import (
    DEFAULT_CATEGORY, TemplateCreate, TemplateUpdate, TemplateResponse,
    QuotaResponse, RenderResponse,
)
from textock.modules.templates.models import SORT_COLUMNS, new_template_row, variables_column
from textock.modules.templates.variables import validate_template, replace_variables, find_unresolved
from textock.modules.templates.quota import compute_quota, quota_exceeded_message
from textock.modules.templates.preview import render_markdown, download_filename
from typing import List, Optional, Dict, Any
from datetime import datetime, timezone
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)

STALE_SAVE_MESSAGE = "Template was changed by another save. Reload it and try again."


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _require_valid_content(content: str) -> None:
    is_valid, errors = validate_template(content)
    if not is_valid:
        raise HTTPException(
            status_code=422,
            detail={"message": "Template content is invalid", "errors": errors},
        )


class TemplateService:
    def __init__(self, supabase: Client):
        self.supabase = supabase
        self.table_name = settings.templates_table

    def _table(self):
        return self.supabase.table(self.table_name)

    def _fetch_row(self, template_id: str, user_id: str) -> Dict[str, Any]:
        result = self._table().select("*").eq("id", template_id).eq("user_id", user_id).maybe_single().execute()
        if not result or not result.data:
            raise HTTPException(status_code=404, detail="Template not found")
        return result.data

    def list_templates(
        self,
        user_id: str,
        category: Optional[str] = None,
        tag: Optional[str] = None,
        sort: str = "updated_at",
        direction: str = "desc",
    ) -> List[TemplateResponse]:
        """List the user's templates, newest update first by default."""
        if sort not in SORT_COLUMNS:
            raise HTTPException(status_code=400, detail=f"Cannot sort by '{sort}'")
        if direction not in ("asc", "desc"):
            raise HTTPException(status_code=400, detail="Sort direction must be 'asc' or 'desc'")
        try:
            query = self._table().select("*").eq("user_id", user_id)
            if category:
                query = query.eq("category", category)
            if tag:
                query = query.contains("tags", [tag])
            result = query.order(sort, desc=direction == "desc").execute()
            return [TemplateResponse(**row) for row in result.data or []]
        except Exception as e:
            logger.error(f"Failed to list templates for user {user_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to load templates")

    def list_categories(self, user_id: str) -> List[str]:
        """Distinct categories in list order."""
        categories: List[str] = []
        for template in self.list_templates(user_id):
            if template.category and template.category not in categories:
                categories.append(template.category)
        return categories

    def count_templates(self, user_id: str) -> int:
        try:
            result = self._table().select("id", count="exact").eq("user_id", user_id).execute()
            if result.count is not None:
                return result.count
            return len(result.data or [])
        except Exception as e:
            logger.error(f"Failed to count templates for user {user_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to load template usage")

    def get_quota(self, user_id: str) -> QuotaResponse:
        return compute_quota(self.count_templates(user_id))

    def get_template(self, template_id: str, user_id: str) -> TemplateResponse:
        """Get template by ID."""
        try:
            return TemplateResponse(**self._fetch_row(template_id, user_id))
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Failed to load template {template_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to load template")

    def create_template(self, template_data: TemplateCreate, user_id: str) -> TemplateResponse:
        """Create a new template after quota and content checks pass."""
        quota = self.get_quota(user_id)
        if quota.reached_limit:
            logger.info(f"User {user_id} hit the template limit ({quota.limit})")
            raise HTTPException(status_code=403, detail=quota_exceeded_message(quota.limit))

        if not template_data.title.strip():
            raise HTTPException(status_code=400, detail="Title is required")
        _require_valid_content(template_data.content.strip())

        try:
            result = self._table().insert(new_template_row(template_data, user_id)).execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create template")

            created = TemplateResponse(**result.data[0])
            if self.count_templates(user_id) > quota.limit:
                # A concurrent create landed after the quota check
                self._table().delete().eq("id", created.id).eq("user_id", user_id).execute()
                logger.info(f"Rolled back template {created.id}: user {user_id} is over the limit")
                raise HTTPException(status_code=403, detail=quota_exceeded_message(quota.limit))
            logger.info(f"Created template {created.id} for user {user_id}")
            return created
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Failed to create template for user {user_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to create template")

    def update_template(self, template_id: str, template_data: TemplateUpdate, user_id: str) -> TemplateResponse:
        """Update template; a content change recomputes its variables."""
        update_data: Dict[str, Any] = {}
        if template_data.title is not None:
            title = template_data.title.strip()
            if not title:
                raise HTTPException(status_code=400, detail="Title is required")
            update_data["title"] = title
        if template_data.content is not None:
            content = template_data.content.strip()
            _require_valid_content(content)
            update_data["content"] = content
            update_data["variables"] = variables_column(content)
        if template_data.description is not None:
            update_data["description"] = template_data.description.strip()
        if template_data.category is not None:
            update_data["category"] = template_data.category.strip() or DEFAULT_CATEGORY
        if template_data.tags is not None:
            update_data["tags"] = template_data.tags
        if template_data.is_markdown is not None:
            update_data["is_markdown"] = template_data.is_markdown

        try:
            current = self._fetch_row(template_id, user_id)
            expected = as_utc(template_data.expected_updated_at)
            if expected is not None:
                stored = as_utc(TemplateResponse(**current).updated_at)
                if stored != expected:
                    logger.warning(f"Rejected stale save of template {template_id}")
                    raise HTTPException(status_code=409, detail=STALE_SAVE_MESSAGE)
            if not update_data:
                return TemplateResponse(**current)

            update_data["updated_at"] = datetime.now(timezone.utc).isoformat()
            query = self._table().update(update_data).eq("id", template_id).eq("user_id", user_id)
            if expected is not None:
                query = query.eq("updated_at", current.get("updated_at"))
            result = query.execute()

            if not result.data:
                if expected is not None:
                    raise HTTPException(status_code=409, detail=STALE_SAVE_MESSAGE)
                raise HTTPException(status_code=404, detail="Template not found")

            return TemplateResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Failed to update template {template_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to update template")

    def delete_template(self, template_id: str, user_id: str) -> None:
        """Delete template"""
        try:
            result = self._table().delete().eq("id", template_id).eq("user_id", user_id).execute()
            if not result.data:
                raise HTTPException(status_code=404, detail="Template not found")
            logger.info(f"Deleted template {template_id} for user {user_id}")
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Failed to delete template {template_id}: {e}")
            raise HTTPException(status_code=500, detail="Failed to delete template")

    def render_template(self, template_id: str, values: Dict[str, str], user_id: str) -> RenderResponse:
        """Substitute values into a stored template; Markdown templates also get an HTML preview."""
        template = self.get_template(template_id, user_id)
        content = replace_variables(template.content, values)
        return RenderResponse(
            content=content,
            html=render_markdown(content) if template.is_markdown else None,
            unresolved=find_unresolved(content),
            filename=download_filename(template.title, template.is_markdown),
        )
