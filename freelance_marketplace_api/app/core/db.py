"""
SQLite database integration and simple migration system.

This module provides functions for obtaining a database connection
(``get_connection``), a commit-on-exit cursor (``get_cursor``) and
applying migrations on application start (``init_db``).  SQLite is used
as a lightweight embedded database; JSON-shaped profile attributes are
stored as JSON text and decoded by the services.

The migration mechanism stores applied migration versions in the
``migrations`` table and executes new migrations in order.
"""

import json
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, Optional

from .config import settings


# code, name, symbol, decimal places.  USD is the base currency.
DEFAULT_CURRENCIES = [
    ("USD", "US Dollar", "$", 2),
    ("EUR", "Euro", "€", 2),
    ("GBP", "British Pound", "£", 2),
    ("JPY", "Japanese Yen", "¥", 0),
    ("CAD", "Canadian Dollar", "CA$", 2),
    ("AUD", "Australian Dollar", "A$", 2),
    ("CHF", "Swiss Franc", "CHF", 2),
    ("CNY", "Chinese Yuan", "CN¥", 2),
    ("INR", "Indian Rupee", "₹", 2),
    ("BRL", "Brazilian Real", "R$", 2),
    ("MXN", "Mexican Peso", "MX$", 2),
    ("KRW", "South Korean Won", "₩", 0),
    ("SGD", "Singapore Dollar", "S$", 2),
    ("HKD", "Hong Kong Dollar", "HK$", 2),
    ("SEK", "Swedish Krona", "kr", 2),
    ("NOK", "Norwegian Krone", "kr", 2),
    ("DKK", "Danish Krone", "kr.", 2),
    ("PLN", "Polish Zloty", "zł", 2),
    ("CZK", "Czech Koruna", "Kč", 2),
    ("HUF", "Hungarian Forint", "Ft", 0),
]


def get_database_path() -> str:
    """Compute the path to the SQLite database file.

    If ``settings.database_url`` is an absolute path, use it directly.
    Otherwise resolve it relative to the package root.
    """
    db_url = settings.database_url
    if os.path.isabs(db_url):
        return db_url
    base_dir = Path(__file__).resolve().parent.parent.parent  # freelance_marketplace_api/
    return str((base_dir / db_url).resolve())


def get_connection() -> sqlite3.Connection:
    """Create and return a new SQLite connection.

    Rows are returned as ``sqlite3.Row`` objects so columns can be
    accessed by name.  Foreign keys are enabled per connection because
    SQLite leaves them off by default; budgets rely on ``ON DELETE
    CASCADE`` to drop their milestones and payments.
    """
    db_path = get_database_path()
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def get_cursor() -> Iterator[sqlite3.Cursor]:
    """Context manager that yields a cursor and closes the connection on exit."""
    conn = get_connection()
    try:
        yield conn.cursor()
        conn.commit()
    finally:
        conn.close()


def to_json(value: Any) -> Optional[str]:
    """Serialise a JSON column value; ``None`` stays ``NULL``."""
    if value is None:
        return None
    return json.dumps(value)


def from_json(value: Optional[str], default: Any = None) -> Any:
    """Decode a JSON column value, returning ``default`` for ``NULL``."""
    if value is None or value == "":
        return default
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return default


TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def utc_now() -> str:
    """Current UTC time in the same format as SQLite's ``CURRENT_TIMESTAMP``."""
    return datetime.now(timezone.utc).strftime(TIMESTAMP_FORMAT)


def to_db_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Normalise a datetime to UTC ``TIMESTAMP_FORMAT`` so string comparisons work in SQL."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored timestamp into an aware UTC datetime."""
    if not value:
        return None
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def init_db() -> None:
    """Initialise the database and apply pending migrations.

    Creates the ``migrations`` table if it does not exist, checks the
    current schema version, and applies any new migrations.  To change
    the schema append a migration with an incremented version number.
    Roles and the supported currencies are seeded on every start with
    ``INSERT OR IGNORE``.
    """
    migrations: list[tuple[int, str]] = [
        # Migration 1: users, profiles and jobs
        (
            1,
            """
            CREATE TABLE IF NOT EXISTS roles (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL UNIQUE,
                permissions TEXT
            );

            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                email TEXT NOT NULL UNIQUE,
                full_name TEXT,
                password TEXT,
                role_id INTEGER NOT NULL,
                is_email_verified INTEGER DEFAULT 0,
                is_deleted INTEGER DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY(role_id) REFERENCES roles(id)
            );

            CREATE TABLE IF NOT EXISTS profiles (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL UNIQUE,
                display_name TEXT,
                bio TEXT,
                profile_picture_url TEXT,
                chat_last_read_at TIMESTAMP,
                skills TEXT,
                experience INTEGER,
                hourly_rate REAL,
                currency TEXT DEFAULT 'USD',
                availability TEXT,
                portfolio_links TEXT,
                education TEXT,
                work_preferences TEXT,
                company_name TEXT,
                company_website TEXT,
                company_size TEXT,
                industry TEXT,
                company_description TEXT,
                contact_person TEXT,
                contact_email TEXT,
                contact_phone TEXT,
                location TEXT,
                billing_address TEXT,
                project_preferences TEXT,
                social_links TEXT,
                system_role TEXT,
                permissions TEXT,
                last_system_access TIMESTAMP,
                admin_preferences TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS jobs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                description TEXT,
                client_id INTEGER,
                status TEXT NOT NULL DEFAULT 'OPEN',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY(client_id) REFERENCES users(id)
            );

            -- job_id is NULL for system level events (e.g. notifications
            -- sent without a job context)
            CREATE TABLE IF NOT EXISTS job_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                job_id INTEGER,
                event_type TEXT NOT NULL,
                event_data TEXT,
                user_id INTEGER,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY(job_id) REFERENCES jobs(id) ON DELETE CASCADE
            );

            CREATE INDEX IF NOT EXISTS idx_profiles_updated_at ON profiles(updated_at);
            CREATE INDEX IF NOT EXISTS idx_job_events_job_id ON job_events(job_id);
            """,
        ),

        # Migration 2: budget system
        (
            2,
            """
            CREATE TABLE IF NOT EXISTS budgets (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                job_id INTEGER NOT NULL UNIQUE,
                type TEXT NOT NULL,
                amount REAL NOT NULL,
                currency TEXT NOT NULL DEFAULT 'USD',
                estimated_hours INTEGER,
                notes TEXT,
                status TEXT NOT NULL DEFAULT 'DRAFT',
                created_by INTEGER,
                approved_by INTEGER,
                approved_at TIMESTAMP,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY(job_id) REFERENCES jobs(id) ON DELETE CASCADE,
                FOREIGN KEY(created_by) REFERENCES users(id),
                FOREIGN KEY(approved_by) REFERENCES users(id)
            );

            CREATE TABLE IF NOT EXISTS milestones (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                budget_id INTEGER NOT NULL,
                name TEXT NOT NULL,
                description TEXT,
                amount REAL NOT NULL,
                percentage REAL NOT NULL DEFAULT 0,
                status TEXT NOT NULL DEFAULT 'PENDING',
                due_date TIMESTAMP,
                completed_at TIMESTAMP,
                completed_by INTEGER,
                deliverables TEXT,
                acceptance_criteria TEXT,
                notes TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY(budget_id) REFERENCES budgets(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS payments (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                budget_id INTEGER NOT NULL,
                milestone_id INTEGER,
                amount REAL NOT NULL,
                currency TEXT NOT NULL,
                payment_type TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'PENDING',
                reference TEXT,
                description TEXT,
                notes TEXT,
                processed_at TIMESTAMP,
                processed_by INTEGER,
                failure_reason TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY(budget_id) REFERENCES budgets(id) ON DELETE CASCADE,
                FOREIGN KEY(milestone_id) REFERENCES milestones(id) ON DELETE SET NULL
            );

            CREATE INDEX IF NOT EXISTS idx_budgets_created_by ON budgets(created_by);
            CREATE INDEX IF NOT EXISTS idx_milestones_budget_id ON milestones(budget_id);
            CREATE INDEX IF NOT EXISTS idx_payments_budget_id ON payments(budget_id);
            CREATE INDEX IF NOT EXISTS idx_payments_milestone_id ON payments(milestone_id);
            """,
        ),

        # Migration 3: currencies and exchange rates
        (
            3,
            """
            CREATE TABLE IF NOT EXISTS currencies (
                code TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                symbol TEXT NOT NULL,
                is_active INTEGER NOT NULL DEFAULT 1,
                is_base INTEGER NOT NULL DEFAULT 0,
                decimal_places INTEGER NOT NULL DEFAULT 2,
                description TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );

            CREATE TABLE IF NOT EXISTS exchange_rates (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                from_currency TEXT NOT NULL,
                to_currency TEXT NOT NULL,
                rate REAL NOT NULL,
                effective_date TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP,
                expiry_date TIMESTAMP,
                source TEXT NOT NULL DEFAULT 'MANUAL',
                is_active INTEGER NOT NULL DEFAULT 1,
                notes TEXT,
                created_by INTEGER,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY(from_currency) REFERENCES currencies(code),
                FOREIGN KEY(to_currency) REFERENCES currencies(code)
            );

            CREATE INDEX IF NOT EXISTS idx_exchange_rates_pair
                ON exchange_rates(from_currency, to_currency, is_active);
            """,
        ),
    ]

    with get_cursor() as cursor:
        cursor.execute(
            "CREATE TABLE IF NOT EXISTS migrations (version INTEGER PRIMARY KEY)"
        )
        cursor.execute("SELECT MAX(version) as version FROM migrations")
        row = cursor.fetchone()
        current_version = row["version"] if row and row["version"] is not None else 0

        for version, sql in migrations:
            if version > current_version:
                cursor.executescript(sql)
                cursor.execute(
                    "INSERT INTO migrations (version) VALUES (?)", (version,)
                )
                current_version = version

        # Roles: ADMIN (1), CLIENT (2), DEVELOPER (3)
        cursor.execute(
            "INSERT OR IGNORE INTO roles (id, name, permissions) VALUES (1, 'ADMIN', '[]')"
        )
        cursor.execute(
            "INSERT OR IGNORE INTO roles (id, name, permissions) VALUES (2, 'CLIENT', '[]')"
        )
        cursor.execute(
            "INSERT OR IGNORE INTO roles (id, name, permissions) VALUES (3, 'DEVELOPER', '[]')"
        )

        for code, name, symbol, decimal_places in DEFAULT_CURRENCIES:
            cursor.execute(
                """
                INSERT OR IGNORE INTO currencies (code, name, symbol, is_active, is_base, decimal_places)
                VALUES (?, ?, ?, 1, ?, ?)
                """,
                (code, name, symbol, 1 if code == "USD" else 0, decimal_places),
            )
