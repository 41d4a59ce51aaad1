"""In-memory template collection for one editing connection."""
import logging
from typing import List, Optional

from fastapi import HTTPException
from fastapi.concurrency import run_in_threadpool

from textock.modules.auth.schemas import SessionContext
from textock.modules.templates.quota import compute_quota, quota_exceeded_message
from textock.modules.templates.schemas import (
    QuotaResponse, TemplateCreate, TemplateResponse, TemplateUpdate,
)
from textock.modules.templates.service import TemplateService, as_utc

logger = logging.getLogger(__name__)


class TemplateWorkspace:
    """
    Local copy of the user's templates.

    Mutations are applied only after the backend call succeeds, and records are
    matched by id. A response older than the record already held is dropped.
    """

    def __init__(self, service: TemplateService, session: SessionContext):
        if session.user is None:
            raise ValueError("Workspace requires an authenticated session")
        self.service = service
        self.session = session
        self.templates: List[TemplateResponse] = []

    @property
    def user_id(self) -> str:
        return self.session.user.id

    async def load(self) -> List[TemplateResponse]:
        self.session.loading = True
        try:
            self.templates = await run_in_threadpool(self.service.list_templates, self.user_id)
        finally:
            self.session.loading = False
        logger.debug(f"Loaded {len(self.templates)} template(s) for user {self.user_id}")
        return self.templates

    def get(self, template_id: str) -> Optional[TemplateResponse]:
        for template in self.templates:
            if template.id == template_id:
                return template
        return None

    def quota(self) -> QuotaResponse:
        return compute_quota(len(self.templates))

    async def create(self, data: TemplateCreate) -> TemplateResponse:
        quota = self.quota()
        if quota.reached_limit:
            raise HTTPException(status_code=403, detail=quota_exceeded_message(quota.limit))
        created = await run_in_threadpool(self.service.create_template, data, self.user_id)
        self.templates.insert(0, created)
        return created

    async def update(self, template_id: str, data: TemplateUpdate) -> TemplateResponse:
        updated = await run_in_threadpool(self.service.update_template, template_id, data, self.user_id)
        return self._replace(updated)

    async def delete(self, template_id: str) -> None:
        await run_in_threadpool(self.service.delete_template, template_id, self.user_id)
        self.templates = [t for t in self.templates if t.id != template_id]

    def _replace(self, template: TemplateResponse) -> TemplateResponse:
        for index, existing in enumerate(self.templates):
            if existing.id != template.id:
                continue
            held = as_utc(existing.updated_at)
            incoming = as_utc(template.updated_at)
            if held and incoming and incoming < held:
                logger.warning(f"Dropped stale copy of template {template.id}")
                return existing
            self.templates[index] = template
            return template
        # Removed from the collection while the save was in flight
        return template
