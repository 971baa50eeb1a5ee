from cardkeep.api.cards import router as cards_router
from cardkeep.api.health import router as health_router
from cardkeep.api.users import router as users_router

__all__ = [
    "cards_router",
    "health_router",
    "users_router",
]
