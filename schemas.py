"""
Pydantic schemas for the portfolio content API.

``ProjectOut`` is the one canonical project shape handed to templates, the
catalog engine and the JSON API.  Stored rows, the static fallback dataset
and client payloads all pass through ``ProjectBase._normalise_keys`` so that
camelCase spellings (``startDate``) never leak past this module.
"""

import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"

Priority = Literal["high", "medium", "low"]

# camelCase spellings accepted on input -> canonical snake_case field
CAMEL_TO_SNAKE = {
    "startDate": "start_date",
    "endDate": "end_date",
    "longDescription": "long_description",
    "detailedDescription": "long_description",
    "detailed_description": "long_description",
    "imageUrl": "image_url",
    "githubUrl": "github_url",
    "demoUrl": "demo_url",
    "videoUrl": "video_url",
    "isFeatured": "is_featured",
    "featured": "is_featured",
    "isOngoing": "is_ongoing",
    "orderIndex": "order_index",
    "teamSize": "team_size",
    "keyAchievements": "key_achievements",
    "dueDate": "due_date",
    "altText": "alt_text",
}


def _normalise(data: Any) -> Any:
    if not isinstance(data, dict):
        return data
    out = {}
    for key, value in data.items():
        canonical = CAMEL_TO_SNAKE.get(key, key)
        # an explicit snake_case value wins over its camelCase twin
        if canonical in out and canonical != key:
            continue
        out[canonical] = value
    return out


# ---------- Project children ----------

class MilestoneIn(BaseModel):
    description: str = Field(..., min_length=1)
    due_date: Optional[datetime.date] = None
    completed: bool = False

    @model_validator(mode="before")
    @classmethod
    def _normalise_keys(cls, data: Any) -> Any:
        return _normalise(data)


class ChallengeIn(BaseModel):
    description: str = Field(..., min_length=1)
    solution: Optional[str] = None


class ResourceIn(BaseModel):
    name: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)


class ImageIn(BaseModel):
    url: str = Field(..., min_length=1)
    alt_text: Optional[str] = None
    caption: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _normalise_keys(cls, data: Any) -> Any:
        return _normalise(data)


class MilestoneOut(MilestoneIn):
    model_config = ConfigDict(from_attributes=True)
    id: Optional[int] = None


class ChallengeOut(ChallengeIn):
    model_config = ConfigDict(from_attributes=True)
    id: Optional[int] = None


class ResourceOut(ResourceIn):
    model_config = ConfigDict(from_attributes=True)
    id: Optional[int] = None


class ImageOut(ImageIn):
    model_config = ConfigDict(from_attributes=True)
    id: Optional[int] = None


# ---------- Projects ----------

class ProjectBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    slug: str = Field(..., min_length=1, max_length=120, pattern=SLUG_PATTERN)
    description: str = Field(..., min_length=1)
    summary: Optional[str] = None
    long_description: Optional[str] = None
    completion: int = Field(0, ge=0, le=100)
    priority: Priority = "medium"
    category: Optional[str] = None
    status: str = "planned"
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None
    is_ongoing: bool = False
    is_featured: bool = False
    order_index: int = 0
    team_size: Optional[int] = Field(None, ge=1)
    image_url: Optional[str] = None
    github_url: Optional[str] = None
    demo_url: Optional[str] = None
    video_url: Optional[str] = None
    technologies: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    key_achievements: List[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _normalise_keys(cls, data: Any) -> Any:
        data = _normalise(cls._as_mapping(data))
        if isinstance(data, dict):
            # JSON columns come back as None for rows saved before a list existed
            for key in ("technologies", "tags", "key_achievements"):
                if data.get(key) is None and key in data:
                    data[key] = []
        return data

    @classmethod
    def _as_mapping(cls, data: Any) -> Any:
        return data

    @model_validator(mode="after")
    def _ongoing_has_no_end(self):
        if self.is_ongoing:
            self.end_date = None
        return self


class ProjectIn(ProjectBase):
    """Create/update payload.  Child lists replace the stored ones wholesale."""
    milestones: List[MilestoneIn] = Field(default_factory=list)
    challenges: List[ChallengeIn] = Field(default_factory=list)
    resources: List[ResourceIn] = Field(default_factory=list)
    images: List[ImageIn] = Field(default_factory=list)


class ProjectOut(ProjectBase):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    kind: Literal["project", "research"] = "project"
    milestones: List[MilestoneOut] = Field(default_factory=list)
    challenges: List[ChallengeOut] = Field(default_factory=list)
    resources: List[ResourceOut] = Field(default_factory=list)
    images: List[ImageOut] = Field(default_factory=list)
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None

    @classmethod
    def _as_mapping(cls, data: Any) -> Any:
        # ORM rows go through the same key normalisation as dict payloads
        if not isinstance(data, dict) and hasattr(data, "__table__"):
            row = {c.name: getattr(data, c.name) for c in data.__table__.columns}
            for child in ("milestones", "challenges", "resources", "images"):
                row[child] = list(getattr(data, child))
            return row
        return data


# ---------- Blog ----------

class BlogCategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    color: Optional[str] = None


class BlogTagOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str


TAG_NAME_MAX = 60


def _tag_names(value: Any) -> Any:
    """Tag names from strings or tag rows, stripped, blanks and case-insensitive
    repeats dropped, first spelling kept.  A single string is comma separated."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple)):
        return value
    names: List[str] = []
    seen = set()
    for item in value:
        name = str(getattr(item, "name", item)).strip()
        if len(name) > TAG_NAME_MAX:
            raise ValueError(f"Tag names are at most {TAG_NAME_MAX} characters")
        if name and name.casefold() not in seen:
            seen.add(name.casefold())
            names.append(name)
    return names


class BlogPostIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    slug: str = Field(..., min_length=1, max_length=120, pattern=SLUG_PATTERN)
    excerpt: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    image_url: Optional[str] = None
    read_time: Optional[int] = Field(None, ge=1)
    published: bool = False
    featured: bool = False
    category_id: Optional[int] = None
    tags: List[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def _clean_tags(cls, value: Any) -> Any:
        return _tag_names(value)


class BlogPostOut(BlogPostIn):
    model_config = ConfigDict(from_attributes=True)

    id: int
    view_count: int = 0
    category: Optional[BlogCategoryOut] = None
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None


# ---------- Skills ----------

class SkillIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    category: str = Field(..., min_length=1, max_length=120)
    proficiency: int = Field(5, ge=0, le=10)
    color: Optional[str] = None
    description: Optional[str] = None
    is_featured: bool = False
    order_index: int = 0


class SkillOut(SkillIn):
    model_config = ConfigDict(from_attributes=True)

    id: int


# ---------- Auth / chat ----------

class LoginRequest(BaseModel):
    username: str
    password: str


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(..., min_length=1)


class ChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(..., min_length=1)


class BlogTagsUpdate(BaseModel):
    tags: List[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def _clean_tags(cls, value: Any) -> Any:
        return _tag_names(value)


class FeaturedToggle(BaseModel):
    featured: bool


class RevalidateRequest(BaseModel):
    secret: Optional[str] = None
    type: str = "all"
    slug: Optional[str] = None
