"""
Tiny helper script to create the database and demo data before running the API.
Usage: python init_db.py
"""

import config
from database import init_db


def main() -> None:
    init_db()
    print(f"Database ready at {config.DATABASE_URL}")


if __name__ == "__main__":
    main()
