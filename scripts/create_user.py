# scripts/create_user.py

import os
import sys
from getpass import getpass

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from werkzeug.security import generate_password_hash

from app import app
from beneficiary_hub.models import User, UserRole


def create_user():
    with app.app_context():
        email = input("Enter email: ").strip()
        full_name = input("Enter full name: ").strip()
        role_name = input("Role (admin/approver) [admin]: ").strip().lower() or "admin"

        try:
            role = UserRole(role_name)
        except ValueError:
            print(f"Error: Unknown role '{role_name}'.")
            sys.exit(1)

        if role not in (UserRole.ADMIN, UserRole.APPROVER):
            print("Error: Only admin and approver accounts can be created here.")
            sys.exit(1)

        if User.find_by_email(email):
            print("Error: Email already exists.")
            sys.exit(1)

        password = getpass("Enter password: ")
        password2 = getpass("Confirm password: ")

        if password != password2:
            print("Error: Passwords do not match.")
            sys.exit(1)

        if not password:
            print("Error: Password cannot be empty.")
            sys.exit(1)

        user, error = User.safe_create(
            email=email,
            full_name=full_name or None,
            password_hash=generate_password_hash(password),
            role=role,
            is_active=True,
        )

        if error:
            print(f"Error creating account: {error}")
            sys.exit(1)
        else:
            print("✅ Account created successfully!")
            print(f"   Email: {user.email}")
            print(f"   Role: {user.role.value}")
            print(f"   Active: {user.is_active}")
            if role == UserRole.ADMIN:
                print("\nNote: an admin cannot approve allocations they made; create an approver as well.")


if __name__ == "__main__":
    create_user()
