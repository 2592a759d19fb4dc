# scripts/init_database.py

"""
Database initialization script.
Creates all tables, including the partial unique index that allows a single
active match per donation.
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import inspect

from app import app
from beneficiary_hub.models import db


def init_database():
    """Create every table that does not exist yet"""
    with app.app_context():
        print("Creating database tables...")
        db.create_all()

        inspector = inspect(db.engine)
        tables = sorted(inspector.get_table_names())
        print("Tables:")
        for table in tables:
            print(f"  - {table}")

        match_indexes = [index["name"] for index in inspector.get_indexes("donation_matches")]
        print(f"\nMatch indexes: {', '.join(match_indexes) or 'none'}")

        print("\nDatabase initialization complete!")
        print("\nNext steps:")
        print("  1. Create an admin: python scripts/create_user.py")
        print("  2. Create an approver: python scripts/create_user.py (role approver)")
        print("  3. Or load sample data: python scripts/seed_database.py")


if __name__ == "__main__":
    init_database()
