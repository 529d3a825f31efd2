"""Issue a bearer token for an existing user.

Useful for scripts and integrations that need API access without a
password login::

    python create_token.py admin@example.com --days 365
"""
import argparse
import sys

from freelance_marketplace_api.app.core.db import get_connection, init_db
from freelance_marketplace_api.app.core.security import create_access_token


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("email", help="e-mail of the user the token is issued for")
    parser.add_argument("--days", type=int, default=365, help="token lifetime in days")
    args = parser.parse_args()

    init_db()
    conn = get_connection()
    try:
        row = conn.execute(
            "SELECT id FROM users WHERE email = ? AND is_deleted = 0", (args.email,)
        ).fetchone()
    finally:
        conn.close()
    if not row:
        print(f"No active user with e-mail {args.email}", file=sys.stderr)
        return 1

    print(create_access_token({"sub": args.email}, expires_delta=args.days * 24 * 60 * 60))
    return 0


if __name__ == "__main__":
    sys.exit(main())
