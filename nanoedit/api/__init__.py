"""
nanoedit/api/__init__.py - Router registry
"""

from fastapi import APIRouter


def register_routers(app):
    """Import and register routers after modules are initialized"""
    from nanoedit.generation import generation_router
    from nanoedit.tasks.views import tasks_router
    from nanoedit.credits.views import credits_router
    from nanoedit.health import health_router

    api_router = APIRouter(prefix="/api")
    api_router.include_router(generation_router)
    api_router.include_router(tasks_router)
    api_router.include_router(credits_router)

    app.include_router(api_router)

    # Health at root
    app.include_router(health_router)
