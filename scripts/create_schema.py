"""
Standalone script that creates every EduMesh table from the ORM models.

Usage:
    python scripts/create_schema.py [--prod | --url URL] [--drop]
"""

import sys
import asyncio
import argparse
from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

# --- Path Setup ---
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from src.edumesh_backend.common.config import settings
from src.edumesh_backend.database import engine as db_engine
from src.edumesh_backend.database.models import Base


async def create_schema(database_url: str, drop: bool):
    db_engine.create_db_engine_and_session_factory(database_url)
    try:
        async with db_engine.engine.begin() as conn:
            if drop:
                print("Dropping existing tables...")
                await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        print(f"Created {len(Base.metadata.sorted_tables)} tables:")
        for table in Base.metadata.sorted_tables:
            print(f"  - {table.name}")
    finally:
        await db_engine.dispose_db_engine()


def main():
    parser = argparse.ArgumentParser(description="Create the EduMesh database schema.")
    target = parser.add_mutually_exclusive_group()
    target.add_argument("--prod", action="store_true", help="Target the PRODUCTION database instead of the test database.")
    target.add_argument("--url", help="Target an explicit database URL.")
    parser.add_argument("--drop", action="store_true", help="Drop all tables before creating them.")
    args = parser.parse_args()

    if args.prod:
        database_url = settings.DATABASE_URL_PROD
        print("⚠️  WARNING: You are about to modify the PRODUCTION database. ⚠️")
        confirmation = input("Are you sure you want to proceed? (y/n): ").strip().lower()
        if confirmation != 'y':
            print("Operation aborted.")
            sys.exit(0)
    else:
        database_url = args.url or settings.DATABASE_URL_TEST

    if ":memory:" in database_url:
        print(f"❌ {database_url} is an in-memory database; the schema would vanish on exit.")
        print("   Pass --url (or set DATABASE_URL_TEST) to a file or server database, or use --prod.")
        sys.exit(2)

    try:
        asyncio.run(create_schema(database_url, args.drop))
    except SQLAlchemyError as e:
        print(f"❌ Schema creation failed: {e}")
        sys.exit(1)
    print("✅ Schema is up to date.")


if __name__ == "__main__":
    main()
