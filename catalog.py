"""Filter/sort engine for project listings.

Everything here is a pure function over already-fetched entities: no
database, no request objects.  Listing routes build a ``Criteria`` from the
query string, call ``filter_and_sort`` and hand the result to a template.
"""

import datetime
import unicodedata
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from pydantic import BaseModel, field_validator

DEFAULT_SORT = "newest"

SORT_OPTIONS: Dict[str, str] = {
    "newest": "Newest first",
    "oldest": "Oldest first",
    "a-z": "Title A-Z",
    "z-a": "Title Z-A",
    "completion-high": "Completion (high to low)",
    "completion-low": "Completion (low to high)",
    "priority-high": "Priority (high to low)",
}

PRIORITY_RANK = {"high": 3, "medium": 2, "low": 1}

# values that mean "no filter" for category / status
_ALL = {"", "all", "All", None}

_SEARCH_FIELDS = ("title", "description", "summary")


class Criteria(BaseModel):
    search: str = ""
    category: Optional[str] = None
    status: Optional[str] = None
    sort: str = DEFAULT_SORT

    @field_validator("category", "status", mode="before")
    @classmethod
    def _all_means_none(cls, v):
        return None if v in _ALL else v

    @field_validator("search", mode="before")
    @classmethod
    def _strip_search(cls, v):
        return (v or "").strip()

    @field_validator("sort", mode="before")
    @classmethod
    def _default_sort(cls, v):
        return v or DEFAULT_SORT


def reset_criteria() -> Criteria:
    return Criteria()


def _get(entity: Any, name: str, default=None):
    if isinstance(entity, Mapping):
        return entity.get(name, default)
    return getattr(entity, name, default)


def _as_date(value) -> datetime.date:
    if value is None or value == "":
        return datetime.date.min
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    try:
        return datetime.date.fromisoformat(str(value)[:10])
    except ValueError:
        return datetime.date.min


def matches_search(entity: Any, search: str) -> bool:
    if not search:
        return True
    needle = search.lower()
    return any(needle in (_get(entity, f) or "").lower() for f in _SEARCH_FIELDS)


def matches(entity: Any, criteria: Criteria) -> bool:
    if not matches_search(entity, criteria.search):
        return False
    if criteria.category is not None and _get(entity, "category") != criteria.category:
        return False
    if criteria.status is not None and _get(entity, "status") != criteria.status:
        return False
    return True


def _fold(text: str) -> str:
    text = unicodedata.normalize("NFKD", text)
    return "".join(c for c in text if not unicodedata.combining(c)).casefold()


def _title_key(entity: Any) -> Tuple[str, str, str]:
    # accented letters collate with their base letter: "Éclair" sorts among the E's
    title = _get(entity, "title") or ""
    return (_fold(title), title.casefold(), title)


def sort_entities(entities: Iterable[Any], sort: str) -> List[Any]:
    """Stable sort by one of ``SORT_OPTIONS``; unknown keys keep input order."""
    items = list(entities)
    if sort == "newest":
        return sorted(items, key=lambda e: _as_date(_get(e, "start_date")), reverse=True)
    if sort == "oldest":
        return sorted(items, key=lambda e: _as_date(_get(e, "start_date")))
    if sort == "a-z":
        return sorted(items, key=_title_key)
    if sort == "z-a":
        return sorted(items, key=_title_key, reverse=True)
    if sort == "completion-high":
        return sorted(items, key=lambda e: _get(e, "completion") or 0, reverse=True)
    if sort == "completion-low":
        return sorted(items, key=lambda e: _get(e, "completion") or 0)
    if sort == "priority-high":
        return sorted(
            items,
            key=lambda e: PRIORITY_RANK.get(_get(e, "priority") or "low", 0),
            reverse=True,
        )
    return items


def filter_and_sort(entities: Iterable[Any], criteria: Optional[Criteria] = None) -> List[Any]:
    """Return a new list of the entities matching every active filter,
    ordered by ``criteria.sort``.  The input is never modified."""
    criteria = criteria or Criteria()
    return sort_entities((e for e in entities if matches(e, criteria)), criteria.sort)


def facets(entities: Iterable[Any]) -> Dict[str, List[str]]:
    """Distinct categories and statuses, in first-seen order."""
    categories: List[str] = []
    statuses: List[str] = []
    for e in entities:
        category, status = _get(e, "category"), _get(e, "status")
        if category and category not in categories:
            categories.append(category)
        if status and status not in statuses:
            statuses.append(status)
    return {"categories": categories, "statuses": statuses}


def active_filter_count(criteria: Criteria) -> int:
    return sum(
        1 for active in (criteria.category, criteria.status, criteria.sort != DEFAULT_SORT) if active
    )


def is_default(criteria: Criteria) -> bool:
    return criteria == reset_criteria()


# ---------- Query-string state ----------

def criteria_from_query(params: Mapping[str, str]) -> Criteria:
    """Read ``q``, ``category``, ``status`` and ``sort`` from a query string."""
    return Criteria(
        search=params.get("q", ""),
        category=params.get("category"),
        status=params.get("status"),
        sort=params.get("sort") or DEFAULT_SORT,
    )


def criteria_to_query(criteria: Criteria, **overrides: Optional[str]) -> Dict[str, str]:
    """Inverse of ``criteria_from_query``.  Defaults are left out so a reset
    view has a bare URL; ``overrides`` replace single keys (``None`` drops one)."""
    params: Dict[str, str] = {}
    if criteria.search:
        params["q"] = criteria.search
    if criteria.category:
        params["category"] = criteria.category
    if criteria.status:
        params["status"] = criteria.status
    if criteria.sort != DEFAULT_SORT:
        params["sort"] = criteria.sort
    for key, value in overrides.items():
        if value is None or value == "" or (key == "sort" and value == DEFAULT_SORT):
            params.pop(key, None)
        else:
            params[key] = value
    return params


# ---------- Derived display values ----------

def days_remaining(end_date, today: Optional[datetime.date] = None) -> Optional[int]:
    """Whole days until ``end_date`` (never negative); None when open-ended."""
    if end_date is None or end_date == "":
        return None
    end = _as_date(end_date)
    today = today or datetime.date.today()
    return max((end - today).days, 0)
