# API Routes
from .reservation_routes import router as reservation_router

__all__ = [
    "reservation_router",
]
