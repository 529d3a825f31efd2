"""
Service layer.

Each service encapsulates the business logic for a domain and talks to
SQLite through ``core.db``.  Services raise the exceptions from
``core.exceptions``; API handlers translate them into HTTP errors.
"""
