"""Location filter builder - predicates and display strings for location scopes.

Pure helpers, no I/O. Matching is case-insensitive substring per present
field, conjunctive across fields. Streets are carried and rendered but no
account column stores them, so they never take part in matching.
"""

from typing import Any, Iterable, List, Mapping, Optional, Union

from admin_audit.models.user import User
from admin_audit.schemas.location import LocationScope

GLOBAL_ACCESS = "Global Access"

ScopeLike = Union[LocationScope, Mapping[str, Any], None]


def normalize_scope(scope: ScopeLike) -> Optional[LocationScope]:
    """Coerce stored or raw scopes to ``LocationScope``; empty scopes become None."""
    if scope is None:
        return None
    if not isinstance(scope, LocationScope):
        scope = LocationScope.from_stored(scope)
        if scope is None:
            return None
    return None if scope.is_empty() else scope


def like_pattern(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def build_location_conditions(scope: ScopeLike, model=User) -> list:
    """
    Build SQLAlchemy predicates restricting ``model`` rows to a scope.

    Args:
        scope: Location scope (legacy ``state`` keys accepted)
        model: Mapped class exposing ``country``, ``city`` and ``district``

    Returns:
        List of predicates to AND together; empty for a global scope
    """
    scope = normalize_scope(scope)
    if scope is None:
        return []

    conditions = []
    if scope.country:
        conditions.append(model.country.ilike(like_pattern(scope.country), escape="\\"))
    if scope.city:
        conditions.append(model.city.ilike(like_pattern(scope.city), escape="\\"))
    if scope.district:
        conditions.append(model.district.ilike(like_pattern(scope.district), escape="\\"))
    return conditions


def has_location_restrictions(role: Optional[str], scope: ScopeLike) -> bool:
    """Only regional admins with a non-empty scope are restricted."""
    return role == "admin" and normalize_scope(scope) is not None


def _contains(haystack: Optional[str], needle: str) -> bool:
    return bool(haystack) and needle.lower() in haystack.lower()


def location_matches(scope: ScopeLike, item: Any) -> bool:
    """
    Check an in-memory row (mapping or object) against a scope.

    Rows may still use ``state`` instead of ``district``. A row missing a
    field that the scope constrains does not match.
    """
    scope = normalize_scope(scope)
    if scope is None:
        return True

    def field(name: str) -> Optional[str]:
        if isinstance(item, Mapping):
            return item.get(name)
        return getattr(item, name, None)

    district = field("district") or field("state")
    if scope.country and not _contains(field("country"), scope.country):
        return False
    if scope.city and not _contains(field("city"), scope.city):
        return False
    if scope.district and not _contains(district, scope.district):
        return False
    return True


def filter_items_by_location(scope: ScopeLike, items: Iterable[Any]) -> List[Any]:
    return [item for item in items if location_matches(scope, item)]


def format_location_display(scope: ScopeLike) -> str:
    """Hierarchical rendering: streets, district, city, country."""
    scope = normalize_scope(scope)
    if scope is None:
        return GLOBAL_ACCESS

    parts: List[str] = []
    if scope.streets:
        if len(scope.streets) == 1:
            parts.append(scope.streets[0])
        else:
            parts.append(f"{len(scope.streets)} streets")
    if scope.district:
        district = scope.district
        parts.append(district if "District" in district else f"{district} District")
    if scope.city:
        parts.append(scope.city)
    if scope.country:
        parts.append(scope.country)
    return ", ".join(parts) if parts else GLOBAL_ACCESS


def format_location_compact(scope: ScopeLike) -> str:
    """Compact rendering for tables, e.g. "3 streets in Downtown Toronto"."""
    scope = normalize_scope(scope)
    if scope is None:
        return GLOBAL_ACCESS

    parts: List[str] = []
    if scope.streets:
        count = len(scope.streets)
        parts.append(f"{count} street{'s' if count > 1 else ''}")
    if scope.district:
        parts.append(f"in {scope.district}")
    if scope.city:
        parts.append(scope.city)
    if not parts and scope.country:
        parts.append(scope.country)
    return " ".join(parts) if parts else GLOBAL_ACCESS


def format_location_detailed(scope: ScopeLike) -> str:
    """Itemized rendering listing every street."""
    scope = normalize_scope(scope)
    if scope is None:
        return GLOBAL_ACCESS

    parts: List[str] = []
    if scope.streets:
        parts.append(f"Streets: {', '.join(scope.streets)}")
    if scope.district:
        parts.append(f"District: {scope.district}")
    if scope.city:
        parts.append(f"City: {scope.city}")
    if scope.country:
        parts.append(f"Country: {scope.country}")
    return " | ".join(parts)
