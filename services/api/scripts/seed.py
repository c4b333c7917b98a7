#!/usr/bin/env python3
"""Seed the tag vocabulary.

Creates (or refreshes name/color of) the default category tags. Packages
themselves arrive through hydration on first lookup.

Idempotent: tags are upserted by id.

Usage:
    cd services/api
    python -m scripts.seed
"""

import asyncio
import os
import sys

# Add parent to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

from app.stores.postgres import close_db, init_db
from app.stores.repository import PresetStore

load_dotenv()

DEFAULT_TAGS = [
    {"id": "frontend", "name": "Frontend", "color": "#3B82F6"},
    {"id": "backend", "name": "Backend", "color": "#8B5CF6"},
    {"id": "utility", "name": "Utility", "color": "#F59E0B"},
    {"id": "framework", "name": "Framework", "color": "#06B6D4"},
    {"id": "react", "name": "React", "color": "#61DAFB"},
    {"id": "vue", "name": "Vue", "color": "#4FC08D"},
    {"id": "angular", "name": "Angular", "color": "#DD0031"},
    {"id": "testing", "name": "Testing", "color": "#10B981"},
    {"id": "build-tool", "name": "Build Tool", "color": "#8B5CF6"},
    {"id": "linter", "name": "Linter", "color": "#EF4444"},
    {"id": "typescript", "name": "TypeScript", "color": "#3178C6"},
    {"id": "css", "name": "CSS", "color": "#1572B6"},
    {"id": "bundler", "name": "Bundler", "color": "#8DD6F9"},
    {"id": "cli", "name": "CLI", "color": "#000000"},
    {"id": "http", "name": "HTTP", "color": "#FF6B6B"},
    {"id": "database", "name": "Database", "color": "#336791"},
    {"id": "security", "name": "Security", "color": "#FF4757"},
    {"id": "date-time", "name": "Date/Time", "color": "#FFA502"},
]


async def seed_tags(store: PresetStore) -> None:
    for tag in DEFAULT_TAGS:
        record = await store.upsert_tag(tag["id"], tag["name"], tag["color"])
        print(f"  {record.id} ({record.name}, {record.color})")


async def seed_database() -> None:
    """Seed database with the default tags."""
    await init_db()
    try:
        print("Seeding tags...")
        await seed_tags(PresetStore())
        print(f"Seeded {len(DEFAULT_TAGS)} tags")
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(seed_database())
