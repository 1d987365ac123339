"""Data access layer: the persistence contract for every content type.

Each repository exposes ``list``, ``get``, ``create``, ``update`` and
``delete`` (projects and blog posts add ``get_by_slug``) and hands back the
canonical pydantic schemas, never ORM rows.  Child collections of a project
are replaced wholesale on every save.
"""

import logging
from typing import Any, Dict, List, Optional, Type

from sqlalchemy import func, update as sql_update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from slugify import slugify

from fallback_data import FALLBACK_PROJECTS
from models import (
    BlogCategory, BlogPost, BlogTag, Project, ProjectChallenge, ProjectImage,
    ProjectMilestone, ProjectResource, Skill,
)
from schemas import (
    BlogCategoryOut, BlogPostIn, BlogPostOut, BlogTagOut, ProjectIn, ProjectOut, SkillIn, SkillOut,
)

logger = logging.getLogger(__name__)

PROJECT_KINDS = ("project", "research")

_CHILD_MODELS = {
    "milestones": ProjectMilestone,
    "challenges": ProjectChallenge,
    "resources": ProjectResource,
    "images": ProjectImage,
}


class RepositoryError(Exception):
    """The store rejected or failed an operation."""


class NotFoundError(RepositoryError):
    def __init__(self, entity: str, key: Any):
        super().__init__(f"{entity} {key!r} not found")
        self.entity = entity
        self.key = key


class ConflictError(RepositoryError):
    """A unique constraint (usually the slug) was violated."""


class _Repository:
    model: Type = None
    schema: Type = None
    label: str = "record"

    def __init__(self, db: Session):
        self.db = db

    def _query(self):
        return self.db.query(self.model)

    def _row(self, entity_id: int):
        row = self._query().filter(self.model.id == entity_id).first()
        if row is None:
            raise NotFoundError(self.label, entity_id)
        return row

    def _commit(self, row=None, slug: Optional[str] = None):
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning("Integrity error saving %s slug=%s: %s", self.label, slug, e.orig)
            raise ConflictError(f"A {self.label} with slug '{slug}' already exists") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to save %s: %s", self.label, e)
            raise RepositoryError(f"Failed to save {self.label}") from e
        if row is not None:
            self.db.refresh(row)
        return row

    def get(self, entity_id: int):
        row = self._query().filter(self.model.id == entity_id).first()
        return self.schema.model_validate(row) if row else None

    def delete(self, entity_id: int) -> None:
        row = self._row(entity_id)
        self.db.delete(row)
        self._commit()
        logger.info("Deleted %s id=%s", self.label, entity_id)


class _SluggedRepository(_Repository):
    """Entities with a public, case-insensitive slug."""

    def get_by_slug(self, slug: str):
        row = self._query().filter(func.lower(self.model.slug) == slug.lower()).first()
        return self.schema.model_validate(row) if row else None


# ---------- Projects & research projects ----------

class ProjectRepository(_SluggedRepository):
    model = Project
    schema = ProjectOut

    def __init__(self, db: Session, kind: str = "project"):
        if kind not in PROJECT_KINDS:
            raise ValueError(f"Unknown project kind: {kind}")
        super().__init__(db)
        self.kind = kind
        self.label = "research project" if kind == "research" else "project"

    def _query(self):
        return self.db.query(Project).filter(Project.kind == self.kind)

    def list(
        self,
        featured: Optional[bool] = None,
        category: Optional[str] = None,
        status: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[ProjectOut]:
        q = self._query()
        if featured is not None:
            q = q.filter(Project.is_featured == featured)
        if category:
            q = q.filter(Project.category == category)
        if status:
            q = q.filter(Project.status == status)
        q = q.order_by(Project.order_index, Project.id)
        if limit:
            q = q.limit(limit)
        return [ProjectOut.model_validate(row) for row in q.all()]

    def list_public(self, featured: Optional[bool] = None, limit: Optional[int] = None) -> List[ProjectOut]:
        """``list`` for public pages: serves the static dataset when the
        store is unreachable or holds nothing yet."""
        try:
            items = self.list(featured=featured, limit=limit)
            empty = not items and self._query().first() is None
        except SQLAlchemyError as e:
            logger.error("Error fetching %ss, using fallback data: %s", self.label, e)
            self.db.rollback()
            return self.fallback(featured=featured, limit=limit)
        if empty:
            logger.info("No %ss found in database, using fallback data", self.label)
            return self.fallback(featured=featured, limit=limit)
        return items

    def get_public(self, slug: str) -> Optional[ProjectOut]:
        """``get_by_slug`` for public pages.  The static dataset is only
        consulted when the store is unreachable or holds no rows of this kind."""
        try:
            found = self.get_by_slug(slug)
            if found is not None or self._query().first() is not None:
                return found
        except SQLAlchemyError as e:
            logger.error("Error fetching %s %s, using fallback data: %s", self.label, slug, e)
            self.db.rollback()
        return next((p for p in self.fallback() if p.slug == slug.lower()), None)

    def fallback(self, featured: Optional[bool] = None, limit: Optional[int] = None) -> List[ProjectOut]:
        items = [
            ProjectOut.model_validate(p) for p in FALLBACK_PROJECTS
            if p.get("kind", "project") == self.kind
        ]
        if featured is not None:
            items = [p for p in items if p.is_featured == featured]
        return items[:limit] if limit else items

    def _apply(self, row: Project, payload: ProjectIn) -> None:
        data = payload.model_dump(exclude=set(_CHILD_MODELS))
        for key, value in data.items():
            setattr(row, key, value)
        for name, child_model in _CHILD_MODELS.items():
            setattr(row, name, [
                child_model(position=i, **item.model_dump())
                for i, item in enumerate(getattr(payload, name))
            ])

    def create(self, payload: ProjectIn) -> ProjectOut:
        row = Project(kind=self.kind)
        self._apply(row, payload)
        self.db.add(row)
        self._commit(row, slug=payload.slug)
        logger.info("Created %s id=%s slug=%s", self.label, row.id, row.slug)
        return ProjectOut.model_validate(row)

    def update(self, entity_id: int, payload: ProjectIn) -> ProjectOut:
        row = self._row(entity_id)
        self._apply(row, payload)
        self._commit(row, slug=payload.slug)
        logger.info("Updated %s id=%s slug=%s", self.label, row.id, row.slug)
        return ProjectOut.model_validate(row)

    def set_featured(self, entity_id: int, featured: bool) -> ProjectOut:
        row = self._row(entity_id)
        row.is_featured = featured
        self._commit(row, slug=row.slug)
        return ProjectOut.model_validate(row)


# ---------- Blog ----------

class BlogPostRepository(_SluggedRepository):
    model = BlogPost
    schema = BlogPostOut
    label = "blog post"

    def list(
        self,
        published: Optional[bool] = None,
        featured: Optional[bool] = None,
        category: Optional[str] = None,
        tag: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[BlogPostOut]:
        q = self._query()
        if published is not None:
            q = q.filter(BlogPost.published == published)
        if featured is not None:
            q = q.filter(BlogPost.featured == featured)
        if category:
            q = q.join(BlogCategory).filter(BlogCategory.slug == category)
        if tag:
            q = q.filter(BlogPost.tags.any(BlogTag.slug == tag.lower()))
        q = q.order_by(BlogPost.created_at.desc(), BlogPost.id.desc())
        if limit:
            q = q.limit(limit)
        return [BlogPostOut.model_validate(row) for row in q.all()]

    def _tags(self, names: List[str]) -> List[BlogTag]:
        """Existing tags matched by slug, new ones created for the rest."""
        tags: Dict[str, BlogTag] = {}
        with self.db.no_autoflush:
            for name in names:
                slug = slugify(name)
                if not slug or slug in tags:
                    continue
                tag = self.db.query(BlogTag).filter(BlogTag.slug == slug).first()
                tags[slug] = tag if tag is not None else BlogTag(name=name, slug=slug)
        return list(tags.values())

    def create(self, payload: BlogPostIn) -> BlogPostOut:
        row = BlogPost(**payload.model_dump(exclude={"tags"}))
        row.tags = self._tags(payload.tags)
        self.db.add(row)
        self._commit(row, slug=payload.slug)
        logger.info("Created blog post id=%s slug=%s", row.id, row.slug)
        return BlogPostOut.model_validate(row)

    def update(self, entity_id: int, payload: BlogPostIn) -> BlogPostOut:
        row = self._row(entity_id)
        for key, value in payload.model_dump(exclude={"tags"}).items():
            setattr(row, key, value)
        row.tags = self._tags(payload.tags)
        self._commit(row, slug=payload.slug)
        logger.info("Updated blog post id=%s slug=%s", row.id, row.slug)
        return BlogPostOut.model_validate(row)

    def increment_views(self, slug: str) -> None:
        """Count one view.  Done in SQL so concurrent readers never lose one."""
        try:
            self.db.execute(
                sql_update(BlogPost)
                .where(BlogPost.slug == slug)
                .values(view_count=BlogPost.view_count + 1)
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Failed to count a view for blog post %s: %s", slug, e)
            raise RepositoryError("Failed to count a view") from e
        self._commit()

    def list_categories(self) -> List[BlogCategoryOut]:
        rows = self.db.query(BlogCategory).order_by(BlogCategory.name).all()
        return [BlogCategoryOut.model_validate(r) for r in rows]

    def create_category(self, name: str, slug: str, color: Optional[str] = None) -> BlogCategoryOut:
        row = BlogCategory(name=name, slug=slug, color=color)
        self.db.add(row)
        self._commit(row, slug=slug)
        return BlogCategoryOut.model_validate(row)

    # ---------- Tags ----------

    def list_tags(self) -> List[BlogTagOut]:
        rows = self.db.query(BlogTag).order_by(BlogTag.name).all()
        return [BlogTagOut.model_validate(r) for r in rows]

    def get_tag(self, slug: str) -> Optional[BlogTagOut]:
        row = self.db.query(BlogTag).filter(BlogTag.slug == slug.lower()).first()
        return BlogTagOut.model_validate(row) if row else None

    def tags_for(self, entity_id: int) -> List[BlogTagOut]:
        return [BlogTagOut.model_validate(t) for t in self._row(entity_id).tags]

    def set_tags(self, entity_id: int, names: List[str]) -> List[BlogTagOut]:
        """Replace the post's tags with ``names``."""
        row = self._row(entity_id)
        row.tags = self._tags(names)
        self._commit(row, slug=row.slug)
        logger.info("Set %d tags on blog post id=%s", len(row.tags), entity_id)
        return [BlogTagOut.model_validate(t) for t in row.tags]


# ---------- Skills ----------

class SkillRepository(_Repository):
    model = Skill
    schema = SkillOut
    label = "skill"

    def list(
        self,
        featured: Optional[bool] = None,
        category: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[SkillOut]:
        q = self._query()
        if featured is not None:
            q = q.filter(Skill.is_featured == featured)
        if category:
            q = q.filter(Skill.category == category)
        q = q.order_by(Skill.category, Skill.order_index, Skill.proficiency.desc())
        if limit:
            q = q.limit(limit)
        return [SkillOut.model_validate(row) for row in q.all()]

    def by_category(self) -> Dict[str, List[SkillOut]]:
        grouped: Dict[str, List[SkillOut]] = {}
        for skill in self.list():
            grouped.setdefault(skill.category, []).append(skill)
        return grouped

    def create(self, payload: SkillIn) -> SkillOut:
        row = Skill(**payload.model_dump())
        self.db.add(row)
        self._commit(row, slug=payload.name)
        logger.info("Created skill id=%s name=%s", row.id, row.name)
        return SkillOut.model_validate(row)

    def update(self, entity_id: int, payload: SkillIn) -> SkillOut:
        row = self._row(entity_id)
        for key, value in payload.model_dump().items():
            setattr(row, key, value)
        self._commit(row, slug=payload.name)
        return SkillOut.model_validate(row)
