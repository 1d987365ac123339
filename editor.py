"""Admin entity editors: form state bound to one entity and its child lists.

An editor is built from a stored entity (``from_entity``), from an empty
template (``blank``) or from a submitted HTML form (``from_form``).  It keeps
raw form values so a failed save can re-render exactly what the admin typed,
and only parses them in ``validate`` / ``to_payload``.
"""

import datetime
import inspect
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError
from slugify import slugify as _slugify

from repository import ConflictError
from schemas import SLUG_PATTERN, BlogPostIn, ProjectIn, SkillIn

logger = logging.getLogger(__name__)

_CHILD_FIELD_RE = re.compile(r"^(?P<kind>[a-z_]+)-(?P<index>\d+)-(?P<field>[a-z_]+)$")
_TRUE = {"on", "true", "1", "yes"}


def slugify(text: str) -> str:
    """Lowercase, hyphen-separated, ``[a-z0-9-]`` only; accents are transliterated."""
    return _slugify(text or "")


class FormValidationError(Exception):
    def __init__(self, errors: Dict[str, str]):
        super().__init__("; ".join(f"{k}: {v}" for k, v in errors.items()))
        self.errors = errors


class SubmissionInProgress(Exception):
    """A second submit arrived while the first was still being persisted."""


@dataclass
class SubmitResult:
    ok: bool
    entity: Any = None
    redirect_to: Optional[str] = None
    error: Optional[str] = None


Persist = Callable[[Dict[str, Any]], Union[Any, Awaitable[Any]]]


def _parse_date(value) -> Optional[datetime.date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    return datetime.date.fromisoformat(str(value).strip()[:10])


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in _TRUE


class EntityEditor:
    """Shared form behaviour.  Subclasses declare their fields."""

    schema = None
    noun = "entity"
    listing_url = "/admin"

    defaults: Dict[str, Any] = {}
    required: Tuple[str, ...] = ()
    int_bounds: Dict[str, Tuple[Optional[int], Optional[int]]] = {}
    optional_ints: Tuple[str, ...] = ()
    date_fields: Tuple[str, ...] = ()
    bool_fields: Tuple[str, ...] = ()
    choices: Dict[str, Tuple[str, ...]] = {}
    extra_fields: Tuple[str, ...] = ()
    # child lists of plain strings
    string_lists: Tuple[str, ...] = ()
    # child lists of records: kind -> (required keys, optional keys)
    record_lists: Dict[str, Tuple[Tuple[str, ...], Tuple[str, ...]]] = {}
    title_field: Optional[str] = "title"

    def __init__(
        self,
        values: Optional[Mapping[str, Any]] = None,
        children: Optional[Mapping[str, List[Any]]] = None,
        entity_id: Optional[int] = None,
    ):
        self.entity_id = entity_id
        self.values: Dict[str, Any] = dict(self.defaults)
        self.values.update(values or {})
        self.children: Dict[str, List[Any]] = {k: [] for k in self._child_kinds()}
        for kind, items in (children or {}).items():
            if kind in self.children:
                self.children[kind] = [i if isinstance(i, str) else dict(i) for i in items]
        self.errors: Dict[str, str] = {}
        self.notification: Optional[str] = None
        self.is_submitting = False
        # a stored slug, or one typed by hand, is never regenerated implicitly
        self.slug_is_manual = bool(self.values.get("slug"))

    # ---------- construction ----------

    @classmethod
    def _child_kinds(cls) -> Tuple[str, ...]:
        return tuple(cls.string_lists) + tuple(cls.record_lists)

    @classmethod
    def blank(cls, **kwargs) -> "EntityEditor":
        return cls(**kwargs)

    @classmethod
    def from_entity(cls, entity: Any, **kwargs) -> "EntityEditor":
        data = entity.model_dump() if hasattr(entity, "model_dump") else dict(entity)
        kinds = cls._child_kinds()
        children = {k: data.pop(k) or [] for k in kinds if k in data}
        for kind, items in children.items():
            if kind in cls.record_lists:
                wanted = set(sum(cls.record_lists[kind], ()))
                children[kind] = [{k: v for k, v in item.items() if k in wanted} for item in items]
        entity_id = data.pop("id", None)
        values = {k: v for k, v in data.items() if k in cls._scalar_fields()}
        return cls(values=values, children=children, entity_id=entity_id, **kwargs)

    @classmethod
    def _scalar_fields(cls) -> set:
        return set(cls.defaults) | set(cls.required) | set(cls.int_bounds) | set(cls.date_fields) \
            | set(cls.bool_fields) | set(cls.choices) | set(cls.extra_fields)

    @classmethod
    def from_form(cls, form: Any, entity_id: Optional[int] = None, **kwargs) -> "EntityEditor":
        """Build an editor from a submitted form.

        Child records arrive as ``<kind>-<index>-<field>`` inputs; rows whose
        inputs are all blank are the empty "add another" rows and are dropped.
        String lists arrive as one textarea with one item per line.
        """
        values: Dict[str, Any] = {}
        for name in cls._scalar_fields():
            if name in cls.bool_fields:
                values[name] = _as_bool(form.get(name))
            elif name in form:
                values[name] = form.get(name)

        children: Dict[str, List[Any]] = {}
        for kind in cls.string_lists:
            raw = form.getlist(kind) if hasattr(form, "getlist") else [form.get(kind) or ""]
            items: List[str] = []
            for chunk in raw:
                for line in str(chunk or "").splitlines():
                    line = line.strip()
                    if line and line not in items:
                        items.append(line)
            children[kind] = items

        rows: Dict[str, Dict[int, Dict[str, Any]]] = {k: {} for k in cls.record_lists}
        for key in form.keys():
            m = _CHILD_FIELD_RE.match(key)
            if not m or m.group("kind") not in cls.record_lists:
                continue
            rows[m.group("kind")].setdefault(int(m.group("index")), {})[m.group("field")] = form.get(key)
        for kind, indexed in rows.items():
            records = []
            for _, row in sorted(indexed.items()):
                if not any(str(v or "").strip() for k, v in row.items() if k != "completed"):
                    continue
                if "completed" in row or kind == "milestones":
                    row["completed"] = _as_bool(row.get("completed"))
                records.append(row)
            children[kind] = records

        editor = cls(values=values, children=children, entity_id=entity_id, **kwargs)
        # the hidden input records whether the slug was typed or derived
        if "slug_manual" in form:
            editor.slug_is_manual = _as_bool(form.get("slug_manual")) and bool(values.get("slug"))
        if editor.title_field and not editor.values.get("slug"):
            editor.generate_slug()
        return editor

    # ---------- field editing ----------

    @property
    def is_new(self) -> bool:
        return self.entity_id is None

    def set_field(self, name: str, value: Any) -> None:
        if name == "slug":
            self.slug_is_manual = bool(value)
        if self.title_field and name == self.title_field:
            self.set_title(value)
            return
        self.values[name] = value

    def set_title(self, title: str) -> None:
        self.values[self.title_field] = title
        if not self.slug_is_manual:
            self.values["slug"] = slugify(title)

    def generate_slug(self, force: bool = False) -> str:
        """Derive the slug from the title.  A hand-edited slug is kept unless
        ``force`` is set."""
        if force or not self.slug_is_manual:
            self.values["slug"] = slugify(self.values.get(self.title_field) or "")
            self.slug_is_manual = False
        return self.values["slug"]

    # ---------- child collections ----------

    def can_add(self, kind: str, item: Any) -> bool:
        if kind in self.string_lists:
            text = (item or "").strip() if isinstance(item, str) else ""
            return bool(text) and text not in self.children[kind]
        if kind in self.record_lists:
            required, _ = self.record_lists[kind]
            return isinstance(item, Mapping) and all(str(item.get(k) or "").strip() for k in required)
        raise KeyError(kind)

    def add_child(self, kind: str, item: Any) -> bool:
        if not self.can_add(kind, item):
            return False
        if kind in self.string_lists:
            self.children[kind].append(item.strip())
        else:
            required, optional = self.record_lists[kind]
            self.children[kind].append({k: item.get(k) for k in required + optional if k in item})
        return True

    def update_child(self, kind: str, index: int, value: Any = None, **fields: Any) -> None:
        items = self.children[kind]
        if kind in self.string_lists:
            items[index] = (value or "").strip()
        else:
            items[index].update(fields)

    def remove_child(self, kind: str, index: int) -> Any:
        return self.children[kind].pop(index)

    # ---------- validation & serialisation ----------

    def _check_int(self, name: str, errors: Dict[str, str]) -> Optional[int]:
        raw = self.values.get(name)
        if raw is None or str(raw).strip() == "":
            if name in self.optional_ints:
                return None
            errors[name] = f"{self._label(name)} is required"
            return None
        try:
            number = int(str(raw).strip())
        except ValueError:
            errors[name] = f"{self._label(name)} must be a whole number"
            return None
        low, high = self.int_bounds.get(name, (None, None))
        if (low is not None and number < low) or (high is not None and number > high):
            if high is None:
                errors[name] = f"{self._label(name)} must be at least {low}"
            else:
                errors[name] = f"{self._label(name)} must be between {low} and {high}"
            return None
        return number

    @staticmethod
    def _label(name: str) -> str:
        return name.replace("_", " ").capitalize()

    def _collect(self) -> Tuple[Dict[str, Any], Dict[str, str]]:
        errors: Dict[str, str] = {}
        payload: Dict[str, Any] = {}

        for name in self._scalar_fields():
            value = self.values.get(name)
            if name in self.int_bounds:
                number = self._check_int(name, errors)
                if number is not None:
                    payload[name] = number
            elif name in self.date_fields:
                try:
                    parsed = _parse_date(value)
                except ValueError:
                    errors[name] = f"{self._label(name)} must be a date (yyyy-MM-dd)"
                    continue
                # a cleared date is left out rather than sent as ""
                if parsed is not None:
                    payload[name] = parsed.isoformat()
            elif name in self.bool_fields:
                payload[name] = _as_bool(value)
            else:
                text = value.strip() if isinstance(value, str) else value
                if text in ("", None):
                    if name in self.required:
                        errors[name] = f"{self._label(name)} is required"
                    continue
                if name in self.choices and text not in self.choices[name]:
                    errors[name] = f"{self._label(name)} must be one of {', '.join(self.choices[name])}"
                    continue
                payload[name] = text

        slug = payload.get("slug")
        if slug and not re.match(SLUG_PATTERN, slug):
            errors["slug"] = "Slug may only contain lowercase letters, numbers and single hyphens"

        for kind in self.string_lists:
            payload[kind] = [s for s in (x.strip() for x in self.children[kind]) if s]
        for kind, (required, optional) in self.record_lists.items():
            records = []
            for i, item in enumerate(self.children[kind]):
                record = {}
                for key in required + optional:
                    value = item.get(key)
                    if key in required and not str(value or "").strip():
                        errors[f"{kind}.{i}.{key}"] = f"{self._label(key)} is required"
                    elif key.endswith("date"):
                        try:
                            parsed = _parse_date(value)
                        except ValueError:
                            errors[f"{kind}.{i}.{key}"] = "Must be a date (yyyy-MM-dd)"
                            continue
                        if parsed is not None:
                            record[key] = parsed.isoformat()
                    elif key == "completed":
                        record[key] = _as_bool(value)
                    elif value not in (None, ""):
                        record[key] = value.strip() if isinstance(value, str) else value
                records.append(record)
            payload[kind] = records

        return payload, errors

    def validate(self) -> Dict[str, str]:
        payload, errors = self._collect()
        if not errors and self.schema is not None:
            try:
                self.schema.model_validate(payload)
            except ValidationError as e:
                for err in e.errors():
                    field = ".".join(str(p) for p in err["loc"]) or "__all__"
                    errors.setdefault(field, err["msg"])
        self.errors = errors
        return errors

    def to_payload(self) -> Dict[str, Any]:
        """Serialised form state: ISO dates, cleared dates omitted, full child lists."""
        payload, _ = self._collect()
        return payload

    def to_model(self):
        return self.schema.model_validate(self.to_payload())

    # ---------- submission ----------

    async def submit(
        self,
        persist: Persist,
        on_success: Optional[Callable[[Any], None]] = None,
    ) -> SubmitResult:
        """Validate, then hand the payload to ``persist``.

        While ``persist`` runs the editor is locked; a concurrent submit
        raises ``SubmissionInProgress``.  A failed save keeps every edit and
        returns a generic notification instead of raising.
        """
        if self.is_submitting:
            raise SubmissionInProgress(f"{self.noun} save already in progress")
        if self.validate():
            raise FormValidationError(self.errors)

        payload = self.to_payload()
        action = "create" if self.is_new else "update"
        self.is_submitting = True
        self.notification = None
        try:
            entity = persist(payload)
            if inspect.isawaitable(entity):
                entity = await entity
        except ConflictError as e:
            logger.warning("Failed to %s %s: %s", action, self.noun, e)
            self.notification = f"Another {self.noun} already uses the slug '{payload.get('slug')}'"
            self.errors = {"slug": "Slug is already in use"}
            return SubmitResult(ok=False, error=self.notification)
        except Exception:
            logger.exception("Failed to %s %s", action, self.noun)
            self.notification = f"Failed to {action} {self.noun}"
            return SubmitResult(ok=False, error=self.notification)
        finally:
            self.is_submitting = False

        if on_success is not None:
            try:
                on_success(entity)
            except Exception:
                logger.exception("Post-save hook failed for %s", self.noun)
        self.notification = f"{self.noun.capitalize()} {action}d successfully"
        return SubmitResult(ok=True, entity=entity, redirect_to=self.listing_url)


class ProjectEditor(EntityEditor):
    schema = ProjectIn
    noun = "project"
    listing_url = "/admin/projects"

    defaults = {
        "title": "", "slug": "", "description": "", "completion": "0",
        "priority": "medium", "status": "planned", "is_ongoing": False,
        "is_featured": False, "order_index": "0",
    }
    required = ("title", "slug", "description")
    int_bounds = {"completion": (0, 100), "team_size": (1, None), "order_index": (None, None)}
    optional_ints = ("team_size", "order_index")
    date_fields = ("start_date", "end_date")
    bool_fields = ("is_ongoing", "is_featured")
    choices = {"priority": ("high", "medium", "low")}
    extra_fields = (
        "summary", "long_description", "category", "status",
        "image_url", "github_url", "demo_url", "video_url",
    )
    string_lists = ("technologies", "tags", "key_achievements")
    record_lists = {
        "milestones": (("description",), ("due_date", "completed")),
        "challenges": (("description",), ("solution",)),
        "resources": (("name", "url"), ()),
        "images": (("url",), ("alt_text", "caption")),
    }

    def __init__(self, *args, kind: str = "project", **kwargs):
        super().__init__(*args, **kwargs)
        self.kind = kind
        if kind == "research":
            self.noun = "research project"
            self.listing_url = "/admin/research-projects"
        if _as_bool(self.values.get("is_ongoing")):
            self.values["end_date"] = None

    @classmethod
    def from_form(cls, form: Any, entity_id: Optional[int] = None, **kwargs) -> "ProjectEditor":
        editor = super().from_form(form, entity_id=entity_id, **kwargs)
        # ``was_ongoing`` carries the checkbox state the form was rendered with
        if editor.is_ongoing or _as_bool(form.get("was_ongoing")):
            editor.set_ongoing(editor.is_ongoing)
        return editor

    @property
    def is_ongoing(self) -> bool:
        return _as_bool(self.values.get("is_ongoing"))

    def set_field(self, name: str, value: Any) -> None:
        if name == "is_ongoing":
            self.set_ongoing(_as_bool(value))
            return
        if name == "is_featured":
            self.set_featured(_as_bool(value))
            return
        # the end-date input is disabled while ongoing
        if name == "end_date" and self.is_ongoing:
            return
        super().set_field(name, value)

    def set_ongoing(self, ongoing: bool) -> None:
        self.values["is_ongoing"] = ongoing
        if ongoing:
            self.values["status"] = "in-progress"
            self.values["end_date"] = None
        else:
            self.values["status"] = "completed"

    def set_featured(self, featured: bool) -> None:
        self.values["is_featured"] = featured

    def _collect(self):
        payload, errors = super()._collect()
        if payload.get("is_ongoing"):
            payload.pop("end_date", None)
        return payload, errors


class BlogPostEditor(EntityEditor):
    schema = BlogPostIn
    noun = "blog post"
    listing_url = "/admin/blog"

    defaults = {
        "title": "", "slug": "", "excerpt": "", "content": "",
        "published": False, "featured": False,
    }
    required = ("title", "slug", "excerpt", "content")
    int_bounds = {"read_time": (1, None), "category_id": (None, None)}
    optional_ints = ("read_time", "category_id")
    bool_fields = ("published", "featured")
    extra_fields = ("image_url",)
    string_lists = ("tags",)


class SkillEditor(EntityEditor):
    schema = SkillIn
    noun = "skill"
    listing_url = "/admin/skills"
    title_field = None

    defaults = {"name": "", "category": "", "proficiency": "5", "is_featured": False, "order_index": "0"}
    required = ("name", "category")
    int_bounds = {"proficiency": (0, 10), "order_index": (None, None)}
    optional_ints = ("order_index",)
    bool_fields = ("is_featured",)
    extra_fields = ("color", "description")

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.slug_is_manual = True


EDITORS = {
    "projects": (ProjectEditor, {"kind": "project"}),
    "research-projects": (ProjectEditor, {"kind": "research"}),
    "blog": (BlogPostEditor, {}),
    "skills": (SkillEditor, {}),
}
