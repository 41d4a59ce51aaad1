# Supabase table: templates
# Operations go through the Supabase SDK in service.py; this module owns the row shape

"""
Expected Supabase table structure:
- id: uuid (primary key, default: gen_random_uuid())
- title: text (not null)
- content: text (not null) - template text with {{variable}} placeholders
- description: text (not null, default: '')
- category: text (not null, default: 'general')
- tags: text[] (not null, default: '{}')
- variables: jsonb (not null, default: '[]') - derived from content on every write, never set by clients
- is_public: boolean (not null, default: false)
- is_markdown: boolean (not null, default: false)
- user_id: uuid (foreign key to auth.users.id, not null)
- created_at: timestamp (default: now())
- updated_at: timestamp (default: now()) - also used for stale-save detection
"""
from typing import Any, Dict, List

from textock.modules.templates.schemas import DEFAULT_CATEGORY, TemplateCreate
from textock.modules.templates.variables import extract_variables

SORT_COLUMNS = ("updated_at", "created_at", "title")


def variables_column(content: str) -> List[Dict[str, Any]]:
    return [v.model_dump(exclude_none=True) for v in extract_variables(content)]


def new_template_row(template_data: TemplateCreate, user_id: str) -> Dict[str, Any]:
    """Insert payload for a checked create request. New templates are always private."""
    content = template_data.content.strip()
    return {
        "title": template_data.title.strip(),
        "content": content,
        "description": (template_data.description or "").strip(),
        "category": (template_data.category or "").strip() or DEFAULT_CATEGORY,
        "tags": template_data.tags,
        "variables": variables_column(content),
        "is_public": False,
        "is_markdown": template_data.is_markdown,
        "user_id": user_id,
    }
