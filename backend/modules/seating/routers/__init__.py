from .seating_router import router as seating_router

__all__ = ["seating_router"]
