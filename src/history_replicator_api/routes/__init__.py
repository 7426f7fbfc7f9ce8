from .intervals import router as intervals_router

__all__ = ["intervals_router"]
