from grimoire.api.catalog import router as catalog_router
from grimoire.api.collections import deck_router, spellbook_router
from grimoire.api.daily import router as daily_router
from grimoire.api.health import router as health_router

__all__ = [
    "catalog_router",
    "daily_router",
    "deck_router",
    "health_router",
    "spellbook_router",
]
