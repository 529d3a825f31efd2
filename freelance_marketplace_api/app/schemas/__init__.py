"""
Pydantic schema definitions for API payloads.

Each domain defines its own request and response models.  Schemas are
separate from the SQLite tables so that the API representation
(camelCase JSON) is decoupled from persistence (snake_case columns).
"""
