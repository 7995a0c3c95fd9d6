"""Automation modules and the service categories routed to them."""

from __future__ import annotations

from typing import Optional

MODULE_CATEGORIES: dict[str, tuple[str, ...]] = {
    "client_delivery": ("artist", "consulting", "podcast"),
    "marketing_automation": ("consulting",),
    "ai_optimization": ("consulting", "podcast"),
    "data_intelligence": ("consulting",),
}


def module_ids_for_category(category: Optional[str]) -> Optional[list[str]]:
    """Return the modules that consume events for *category*, or None if none do."""
    if not category:
        return None
    key = category.lower()
    ids = [module_id for module_id, categories in MODULE_CATEGORIES.items() if key in categories]
    return ids or None
