# followup/models/site.py
"""Expert portal automation profiles."""

import json
from pydantic import Field, SecretStr, field_validator
from typing import Any, Dict, Optional

from followup.core.constants import SELECTOR_ALIASES
from followup.core.security import mask_credentials
from followup.models.base import BaseEntity, coerce_datetime
from followup.models.enums import AuthMode


def _parse_mapping(value: Any) -> Dict[str, Any]:
    """Accept a mapping or its JSON text; anything unparseable is empty."""
    if value is None:
        return {}
    if isinstance(value, str):
        if not value.strip():
            return {}
        try:
            value = json.loads(value)
        except ValueError:
            return {}
    if not isinstance(value, dict):
        return {}
    return value


class SiteAutomationProfile(BaseEntity):
    """How to drive one expert portal.

    ``selectors`` point at the login fields, search inputs, result rows,
    report link and message box of the portal's pages. ``credentials`` hold
    the portal login and are never serialized back out: use
    :meth:`public_view` for anything leaving the process.
    """
    id: str
    name: str
    search_url: Optional[str] = None
    auth_mode: AuthMode = AuthMode.NONE
    credentials: Dict[str, SecretStr] = Field(default_factory=dict, exclude=True, repr=False)
    selectors: Dict[str, str] = Field(default_factory=dict)
    active: bool = True

    @field_validator("credentials", mode="before")
    @classmethod
    def parse_credentials(cls, value):
        cleaned = {}
        for key, secret in _parse_mapping(value).items():
            if isinstance(secret, SecretStr):
                secret = secret.get_secret_value()
            if not str(key).strip() or secret is None:
                continue
            secret = str(secret).strip()
            if secret:
                cleaned[str(key).strip()] = secret
        return cleaned

    @field_validator("selectors", mode="before")
    @classmethod
    def parse_selectors(cls, value):
        raw = {
            str(k): str(v).strip()
            for k, v in _parse_mapping(value).items()
            if v is not None and str(v).strip()
        }
        normalized = dict(raw)
        for legacy, canonical in SELECTOR_ALIASES.items():
            if legacy in raw:
                normalized.pop(legacy)
                normalized.setdefault(canonical, raw[legacy])
        return normalized

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def coerce_dates(cls, value):
        return coerce_datetime(value)

    @property
    def has_credentials(self) -> bool:
        return len(self.credentials) > 0

    def credential(self, *keys: str) -> str:
        """First non-empty credential among ``keys``, or an empty string."""
        for key in keys:
            secret = self.credentials.get(key)
            if secret is not None and secret.get_secret_value():
                return secret.get_secret_value()
        return ""

    def selector(self, key: str) -> Optional[str]:
        return self.selectors.get(key) or None

    def public_view(self) -> Dict[str, Any]:
        """Serializable form with credentials collapsed to a presence flag."""
        data = self.model_dump(mode="json")
        data["credentials"] = mask_credentials(self.credentials)
        return data
