"""CLI for auth code management.

Usage::

    uv run python -m scripts.manage_auth_codes <command> [options]

Commands:
    generate     Issue a new auth code for a tenant user
    list         List auth codes (masked) with usage
    deactivate   Deactivate an auth code, or all codes of a holder
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Callable
from datetime import UTC, datetime

from sqlalchemy import create_engine, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gatekeeper.auth.admin import MAX_GENERATE_ATTEMPTS
from gatekeeper.auth.codes import generate_auth_code, mask_auth_code, truncate_to_ms
from gatekeeper.config import settings
from gatekeeper.storage.orm import AuthCode


def get_sync_session() -> Session:
    """Create sync session for CLI operations.

    Uses the same database URL as the async app (psycopg v3
    handles both sync and async natively).
    """
    engine = create_engine(settings.database_url)
    return Session(engine)


def _parse_expiry(value: str | None) -> datetime | None:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return truncate_to_ms(parsed)


def generate(args: argparse.Namespace) -> None:
    """Issue a new auth code."""
    tenant_id = args.tenant.strip()
    username = args.username.strip()
    created_by = args.created_by.strip()
    if not tenant_id or not username or not created_by:
        print("Tenant, username and created-by must not be empty", file=sys.stderr)
        sys.exit(1)

    try:
        expires_at = _parse_expiry(args.expires_at)
    except ValueError:
        print(f"Invalid --expires-at: {args.expires_at}", file=sys.stderr)
        sys.exit(1)

    created_at = truncate_to_ms(datetime.now(UTC))
    if expires_at is not None:
        created_at = min(created_at, expires_at)

    with get_sync_session() as session:
        for _ in range(MAX_GENERATE_ATTEMPTS):
            code = generate_auth_code(settings.auth_code_prefix)
            session.add(
                AuthCode(
                    auth_code=code,
                    tenant_id=tenant_id,
                    username=username,
                    created_at=created_at,
                    created_by=created_by,
                    expires_at=expires_at,
                    is_active=True,
                    usage_count=0,
                )
            )
            try:
                session.commit()
                break
            except IntegrityError:
                session.rollback()
        else:
            print(
                f"Could not generate a unique auth code in "
                f"{MAX_GENERATE_ATTEMPTS} attempts",
                file=sys.stderr,
            )
            sys.exit(1)

    print(f'Auth code issued for "{tenant_id}/{username}":')
    print(f"   Code:     {code}")
    print(f"   Expires:  {expires_at.isoformat() if expires_at else 'never'}")
    print()
    print("Save this code now -- it cannot be retrieved later!")


def list_codes(args: argparse.Namespace) -> None:
    """List auth codes ordered by tenant and code."""
    with get_sync_session() as session:
        stmt = select(AuthCode).order_by(AuthCode.tenant_id, AuthCode.auth_code)
        if args.tenant:
            stmt = stmt.where(AuthCode.tenant_id == args.tenant)
        codes = session.execute(stmt).scalars().all()

        if not codes:
            print("No auth codes found.")
            return

        print("Auth codes:")
        for i, row in enumerate(codes, 1):
            status = "active" if row.is_active else "inactive"
            print(
                f"  {i}. {row.tenant_id}/{row.username} "
                f"{mask_auth_code(row.auth_code)} {status} usage={row.usage_count}"
            )


def deactivate(args: argparse.Namespace) -> None:
    """Deactivate one code by its full value, or every code of a holder.

    Deactivating an already inactive code succeeds.
    """
    if args.code:
        stmt = select(AuthCode).where(AuthCode.auth_code == args.code)
        target = mask_auth_code(args.code)
    elif args.tenant and args.username:
        stmt = (
            select(AuthCode)
            .where(
                AuthCode.tenant_id == args.tenant,
                AuthCode.username == args.username,
            )
            .order_by(AuthCode.auth_code)
        )
        target = f"{args.tenant}/{args.username}"
    else:
        print("Pass --code, or both --tenant and --username", file=sys.stderr)
        sys.exit(1)

    with get_sync_session() as session:
        rows = session.execute(stmt).scalars().all()
        if not rows:
            print(f"Auth code not found: {target}", file=sys.stderr)
            sys.exit(1)

        for row in rows:
            row.is_active = False
        session.commit()
        print(f"Auth code deactivated: {target} ({len(rows)} code(s))")


def main() -> None:
    """Parse arguments and dispatch to command handler."""
    parser = argparse.ArgumentParser(description="Auth code management CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    # generate
    p = sub.add_parser("generate", help="Issue a new auth code")
    p.add_argument("--tenant", required=True, help="Tenant id")
    p.add_argument("--username", required=True, help="Holder username")
    p.add_argument("--created-by", default="cli", help="Issuing principal")
    p.add_argument("--expires-at", default=None, help="ISO-8601 expiry (UTC default)")

    # list
    p = sub.add_parser("list", help="List auth codes")
    p.add_argument("--tenant", default=None, help="Filter by tenant id")

    # deactivate
    p = sub.add_parser("deactivate", help="Deactivate an auth code")
    p.add_argument("--code", default=None, help="Full auth code")
    p.add_argument("--tenant", default=None, help="Tenant id of the holder")
    p.add_argument("--username", default=None, help="Username of the holder")

    args = parser.parse_args()
    commands: dict[str, Callable[[argparse.Namespace], None]] = {
        "generate": generate,
        "list": list_codes,
        "deactivate": deactivate,
    }
    commands[args.command](args)


if __name__ == "__main__":
    main()
