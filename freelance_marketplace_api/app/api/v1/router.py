"""
Top-level router for version 1 of the API.

This router aggregates the domain routers (budgets, currencies,
profiles, search, etc.) under a unified prefix.  When new domains are
introduced, include their routers here.
"""

from fastapi import APIRouter

from .endpoints import (
    budgets,
    currencies,
    jobs,
    notifications,
    profile,
    search,
    users,
)

router = APIRouter()

router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
router.include_router(budgets.router, prefix="/budgets", tags=["budgets"])
router.include_router(currencies.router, prefix="/currencies", tags=["currencies"])
router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
router.include_router(profile.router, prefix="/profile", tags=["profile"])
# Search lives under the plural prefix: it returns many profiles, while
# ``/profile`` always acts on the caller's own profile.
router.include_router(search.router, prefix="/profiles", tags=["search"])
