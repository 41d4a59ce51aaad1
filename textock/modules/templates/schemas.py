from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Literal, Union
from datetime import datetime

DEFAULT_CATEGORY = "general"


def parse_tags(value: Union[str, List[str], None]) -> List[str]:
    """Split a comma-separated tag field (or list), trim, drop empties, de-duplicate keeping order."""
    if value is None:
        return []
    parts = value.split(",") if isinstance(value, str) else value
    tags: List[str] = []
    for part in parts:
        tag = str(part).strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


class VariableDefinition(BaseModel):
    name: str
    type: Literal["text", "number", "select"] = "text"
    required: bool = True
    default_value: Optional[str] = None
    options: Optional[List[str]] = None


class TemplateCreate(BaseModel):
    title: str
    content: str
    description: Optional[str] = None
    category: Optional[str] = None
    tags: List[str] = []
    is_markdown: bool = False

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, value):
        return parse_tags(value)

    class Config:
        extra = "forbid"


class TemplateUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    is_markdown: Optional[bool] = None
    # Rejects the save with 409 when the stored record changed since this timestamp
    expected_updated_at: Optional[datetime] = None

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, value):
        return None if value is None else parse_tags(value)

    class Config:
        extra = "forbid"


class TemplateResponse(BaseModel):
    id: str
    title: str
    content: str
    description: Optional[str] = ""
    category: str = DEFAULT_CATEGORY
    tags: List[str] = []
    variables: List[VariableDefinition] = []
    is_public: bool = False
    is_markdown: bool = False
    user_id: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ContentCheckRequest(BaseModel):
    content: str = ""


class ContentCheckResponse(BaseModel):
    is_valid: bool
    errors: List[str]
    variables: List[VariableDefinition]


class QuotaResponse(BaseModel):
    current: int
    limit: int
    remaining: int
    percentage: float
    reached_limit: bool
    status: Literal["normal", "caution", "warning", "critical"]
    message: str


class RenderRequest(BaseModel):
    values: Dict[str, str] = Field(default_factory=dict)


class RenderResponse(BaseModel):
    content: str
    html: Optional[str] = None
    unresolved: List[str]
    filename: str
