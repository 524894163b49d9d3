"""Owner settings service - read and upsert the owner profile.

Each part (company, branding, preferences) is updated on its own. Values
sent by the owner are deep-merged into what is stored, so a partial update
keeps every field it does not name.
"""

import logging
from typing import Any, Dict, Optional
from uuid import UUID

from ..config import Settings, get_settings
from ..domain.documents.models import EntityType, OwnerProfile
from ..domain.documents.ports import DocumentStorePort

logger = logging.getLogger(__name__)

PROFILE_PARTS = ("company", "branding", "preferences")


def deep_merge(base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries, with update values taking precedence.

    Nested dictionaries are merged recursively. Lists and other values are replaced.

    Example:
        base = {"currency": "SAR", "numbering_prefixes": {"invoice": "INV"}}
        update = {"numbering_prefixes": {"quotation": "Q"}}
        deep_merge(base, update)
        # {"currency": "SAR", "numbering_prefixes": {"invoice": "INV", "quotation": "Q"}}
    """
    result = base.copy()

    for key, value in update.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


class OwnerProfileService:
    """Service for an owner's company identity, branding and preferences."""

    def __init__(self, store: DocumentStorePort, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.store = store
        self.default_currency = settings.DEFAULT_CURRENCY

    def get_profile(self, owner_id: UUID) -> OwnerProfile:
        """Stored profile, or the defaults for an owner who never saved one."""
        profile = self.store.get(EntityType.OWNER_PROFILE, owner_id)
        return profile or OwnerProfile.default(owner_id, self.default_currency)

    def update_part(self, owner_id: UUID, part: str, changes: Dict[str, Any]) -> OwnerProfile:
        """Merge changes into one part of the profile and store it.

        The profile is created on first update.

        Args:
            owner_id: Profile owner
            part: One of company, branding, preferences
            changes: JSON-compatible values to merge

        Raises:
            ValueError: Unknown profile part
        """
        if part not in PROFILE_PARTS:
            raise ValueError(f"Unknown profile part: {part}")

        with self.store.atomic():
            profile = self.get_profile(owner_id)
            data = profile.to_dict()
            data[part] = deep_merge(data[part], changes)
            updated = self.store.put(OwnerProfile.from_dict(data))

        logger.info(
            f"Updated {part} settings",
            extra={"owner_id": owner_id, "fields": sorted(changes)},
        )
        return updated

    def update_company(self, owner_id: UUID, changes: Dict[str, Any]) -> OwnerProfile:
        return self.update_part(owner_id, "company", changes)

    def update_branding(self, owner_id: UUID, changes: Dict[str, Any]) -> OwnerProfile:
        return self.update_part(owner_id, "branding", changes)

    def update_preferences(self, owner_id: UUID, changes: Dict[str, Any]) -> OwnerProfile:
        return self.update_part(owner_id, "preferences", changes)
