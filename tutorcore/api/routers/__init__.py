"""API routers for tutor-core."""

from tutorcore.api.routers import tutoring_router

__all__ = [
    "tutoring_router",
]
