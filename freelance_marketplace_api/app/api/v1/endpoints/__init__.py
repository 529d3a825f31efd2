"""
Endpoint subpackage for API v1.

Each module defines an APIRouter for one domain (budgets, currencies,
profiles, ...).  The routers are aggregated in ``router.py``.
"""
