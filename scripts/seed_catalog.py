#!/usr/bin/env python3
"""Create tables and load the demo FarmTech catalogue and accounts."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from database import Base, count_products, engine, seed_data  # noqa: E402
from seed_data.product_catalog import SEED_USERS  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Drop existing products, carts, wishlists and orders before seeding",
    )
    args = parser.parse_args()

    Base.metadata.create_all(bind=engine)
    seed_data(reset=args.reset)

    print(f"Catalogue holds {count_products()} products")
    for name, email, password, role in SEED_USERS:
        print(f"[{role}] {name}: {email} / {password}")


if __name__ == "__main__":
    main()
