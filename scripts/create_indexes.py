#!/usr/bin/env python3
"""
Create MongoDB indexes and seed default interview prices.
Run from the project root: python3 scripts/create_indexes.py
"""
import sys
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from mockbook.config import get_config
from mockbook.db.mongo import get_database, ensure_indexes
from mockbook.services.price_service import PriceService


def main():
    config = get_config()
    db = get_database(config)

    print(f"Creating indexes for database: {db.name}")
    print("-" * 50)
    ensure_indexes(db)
    for name in ("slots", "interviews", "payments", "reminders", "feedback", "users"):
        keys = [", ".join(k for k, _ in idx["key"].items()) for idx in db[name].list_indexes()]
        print(f"  📁 {name}: {'; '.join(keys)}")

    PriceService(config, db).seed_defaults()
    print("\n✅ Indexes ensured and default prices seeded")


if __name__ == "__main__":
    main()
