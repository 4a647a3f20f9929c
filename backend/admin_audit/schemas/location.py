"""Location scope schemas"""

import json
import logging
from typing import Any, List, Optional

from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)


class LocationScope(BaseModel):
    """Partially specified country > city > district > streets scope.

    Stored scopes written before districts existed use ``state``; it is read
    as ``district`` whenever ``district`` itself is missing.
    """
    country: Optional[str] = None
    city: Optional[str] = None
    district: Optional[str] = None
    streets: List[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _migrate_legacy_state(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            state = data.pop("state", None)
            if state and not data.get("district"):
                data["district"] = state
            if data.get("streets") is None:
                data["streets"] = []
            for key in ("country", "city", "district"):
                value = data.get(key)
                if isinstance(value, str):
                    data[key] = value.strip() or None
            if isinstance(data.get("streets"), list):
                data["streets"] = [s.strip() for s in data["streets"] if isinstance(s, str) and s.strip()]
        return data

    @classmethod
    def from_stored(cls, raw: Any) -> Optional["LocationScope"]:
        """Parse a stored scope (dict or JSON text); None when absent or unreadable."""
        if not raw:
            return None
        try:
            if isinstance(raw, str):
                raw = json.loads(raw)
            if not isinstance(raw, dict):
                return None
            return cls.model_validate(raw)
        except (ValueError, TypeError) as exc:
            logger.error(f"Unreadable stored location scope: {exc}")
            return None

    def is_empty(self) -> bool:
        return not (self.country or self.city or self.district or self.streets)

    def has_enforceable_fields(self) -> bool:
        """Whether any field maps onto an account column."""
        return bool(self.country or self.city or self.district)

    def to_stored(self) -> dict:
        return self.model_dump(exclude_none=True)
