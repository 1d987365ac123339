"""SQLAlchemy ORM models for the admin account and portfolio content."""

import datetime
from sqlalchemy import (
    Column, Integer, String, Text, Date, DateTime, ForeignKey, JSON, Boolean,
    UniqueConstraint, Table,
)
from sqlalchemy.orm import relationship

from database import Base


class AdminUser(Base):
    __tablename__ = "admin_users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)


class Project(Base):
    """A portfolio project or a research project, told apart by ``kind``."""

    __tablename__ = "projects"
    __table_args__ = (UniqueConstraint("kind", "slug", name="uq_projects_kind_slug"),)

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(String(20), nullable=False, default="project", index=True)
    title = Column(String(200), nullable=False)
    slug = Column(String(120), nullable=False, index=True)
    description = Column(Text, nullable=False)
    summary = Column(Text, nullable=True)
    long_description = Column(Text, nullable=True)
    completion = Column(Integer, nullable=False, default=0)
    priority = Column(String(10), nullable=False, default="medium")
    category = Column(String(120), nullable=True)
    status = Column(String(40), nullable=False, default="planned")
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    is_ongoing = Column(Boolean, default=False, nullable=False)
    is_featured = Column(Boolean, default=False, nullable=False)
    order_index = Column(Integer, default=0, nullable=False)
    team_size = Column(Integer, nullable=True)
    image_url = Column(String(512), nullable=True)
    github_url = Column(String(512), nullable=True)
    demo_url = Column(String(512), nullable=True)
    video_url = Column(String(512), nullable=True)
    technologies = Column(JSON, nullable=True)
    tags = Column(JSON, nullable=True)
    key_achievements = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    milestones = relationship(
        "ProjectMilestone", back_populates="project", cascade="all, delete-orphan",
        order_by="ProjectMilestone.position",
    )
    challenges = relationship(
        "ProjectChallenge", back_populates="project", cascade="all, delete-orphan",
        order_by="ProjectChallenge.position",
    )
    resources = relationship(
        "ProjectResource", back_populates="project", cascade="all, delete-orphan",
        order_by="ProjectResource.position",
    )
    images = relationship(
        "ProjectImage", back_populates="project", cascade="all, delete-orphan",
        order_by="ProjectImage.position",
    )


class ProjectMilestone(Base):
    __tablename__ = "project_milestones"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False)
    description = Column(Text, nullable=False)
    due_date = Column(Date, nullable=True)
    completed = Column(Boolean, default=False, nullable=False)
    position = Column(Integer, default=0, nullable=False)

    project = relationship("Project", back_populates="milestones")


class ProjectChallenge(Base):
    __tablename__ = "project_challenges"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False)
    description = Column(Text, nullable=False)
    solution = Column(Text, nullable=True)
    position = Column(Integer, default=0, nullable=False)

    project = relationship("Project", back_populates="challenges")


class ProjectResource(Base):
    __tablename__ = "project_resources"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False)
    name = Column(String(200), nullable=False)
    url = Column(String(512), nullable=False)
    position = Column(Integer, default=0, nullable=False)

    project = relationship("Project", back_populates="resources")


class ProjectImage(Base):
    __tablename__ = "project_images"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False)
    url = Column(String(512), nullable=False)
    alt_text = Column(String(255), nullable=True)
    caption = Column(String(255), nullable=True)
    position = Column(Integer, default=0, nullable=False)

    project = relationship("Project", back_populates="images")


class BlogCategory(Base):
    __tablename__ = "blog_categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), unique=True, nullable=False)
    slug = Column(String(120), unique=True, nullable=False, index=True)
    color = Column(String(20), nullable=True)

    posts = relationship("BlogPost", back_populates="category")


blog_post_tags = Table(
    "blog_post_tags",
    Base.metadata,
    Column("post_id", Integer, ForeignKey("blog_posts.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("blog_tags.id", ondelete="CASCADE"), primary_key=True),
)


class BlogTag(Base):
    __tablename__ = "blog_tags"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(60), nullable=False)
    slug = Column(String(80), unique=True, nullable=False, index=True)

    posts = relationship("BlogPost", secondary=blog_post_tags, back_populates="tags")


class BlogPost(Base):
    __tablename__ = "blog_posts"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    slug = Column(String(120), unique=True, nullable=False, index=True)
    excerpt = Column(Text, nullable=False)
    content = Column(Text, nullable=False)
    image_url = Column(String(512), nullable=True)
    read_time = Column(Integer, nullable=True)
    published = Column(Boolean, default=False, nullable=False)
    featured = Column(Boolean, default=False, nullable=False)
    view_count = Column(Integer, default=0, nullable=False)
    category_id = Column(Integer, ForeignKey("blog_categories.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    category = relationship("BlogCategory", back_populates="posts")
    tags = relationship(
        "BlogTag", secondary=blog_post_tags, back_populates="posts", order_by="BlogTag.name",
    )


class Skill(Base):
    __tablename__ = "skills"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    category = Column(String(120), nullable=False, index=True)
    proficiency = Column(Integer, nullable=False, default=5)
    color = Column(String(20), nullable=True)
    description = Column(Text, nullable=True)
    is_featured = Column(Boolean, default=False, nullable=False)
    order_index = Column(Integer, default=0, nullable=False)
