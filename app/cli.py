"""CLI commands for management tasks."""

import asyncio
import sys

from app.core.database import Base, async_session_maker, engine
from app.core.logging import get_logger, setup_logging
from app.services.auth import create_superadmin, get_user_by_email
from app.services.invoice import update_overdue_invoices

logger = get_logger("app.cli")


async def create_superadmin_command(email: str, password: str, name: str) -> None:
    """Create a platform operator account."""
    async with async_session_maker() as db:
        if await get_user_by_email(db, email):
            print(f"Error: Email {email} is already registered!")
            sys.exit(1)

        user = await create_superadmin(db, email, password, name)

        print("✓ Superadmin created successfully!")
        print(f"  ID: {user.id}")
        print(f"  Name: {user.name}")
        print(f"  Email: {user.email}")


async def mark_overdue_command() -> None:
    """Run the overdue sweep. Meant to be scheduled daily."""
    async with async_session_maker() as db:
        count = await update_overdue_invoices(db)
    logger.info("Overdue sweep finished", extra={"updated_count": count})
    print(f"✓ {count} invoice(s) marked overdue")


async def init_db_command() -> None:
    """Create all tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    print("✓ Database tables created")


USAGE = """Usage: python -m app.cli <command>
Commands:
  create-superadmin <email> <password> <name>
  mark-overdue
  init-db"""


def main() -> None:
    """CLI entry point."""
    setup_logging()

    if len(sys.argv) < 2:
        print(USAGE)
        sys.exit(1)

    command = sys.argv[1]

    if command == "create-superadmin":
        if len(sys.argv) != 5:
            print("Usage: python -m app.cli create-superadmin <email> <password> <name>")
            sys.exit(1)

        _, _, email, password, name = sys.argv
        asyncio.run(create_superadmin_command(email, password, name))
    elif command == "mark-overdue":
        asyncio.run(mark_overdue_command())
    elif command == "init-db":
        asyncio.run(init_db_command())
    else:
        print(f"Unknown command: {command}")
        sys.exit(1)


if __name__ == "__main__":
    main()
