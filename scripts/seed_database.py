# scripts/seed_database.py
"""
Database seeding script.
Populates the database with sample donors, schools, applications and donations
so the matching workflow can be exercised end to end.
"""

import argparse
import os
import random
import sys
from datetime import date, timedelta

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from faker import Faker
from werkzeug.security import generate_password_hash

from app import app
from beneficiary_hub.models import (
    ApplicationStatus,
    Donation,
    DonationApprovalStatus,
    DonationMatch,
    DonationStatus,
    ResourceApplication,
    School,
    User,
    UserRole,
    db,
)

fake = Faker("en_ZA")

PROVINCES = {
    "Western Cape": ["Cape Town", "Stellenbosch", "George"],
    "Eastern Cape": ["Mthatha", "Gqeberha", "East London"],
    "Gauteng": ["Johannesburg", "Pretoria", "Soweto"],
    "KwaZulu-Natal": ["Durban", "Pietermaritzburg", "Richards Bay"],
    "Limpopo": ["Polokwane", "Thohoyandou"],
}

RESOURCE_TYPES = {
    "books": ["grade readers", "dictionaries", "story books", "atlases"],
    "stationery": ["exercise books", "pencils", "calculators", "rulers"],
    "equipment": ["science kits", "projector", "laptops", "printer"],
    "furniture": ["desks", "chairs", "bookshelves"],
    "sports": ["soccer balls", "netball kit", "athletics spikes"],
}

PRIORITIES = ["low", "medium", "high", "urgent", "critical"]

# Statistics tracking
stats = {
    "staff": 0,
    "donors": 0,
    "schools": 0,
    "applications": 0,
    "donations": 0,
    "errors": [],
}


def clear_database():
    """Clear all seeded data from the database"""
    print("Clearing existing data...")
    with app.app_context():
        try:
            # Delete in reverse order of dependencies
            DonationMatch.query.delete()
            ResourceApplication.query.delete()
            Donation.query.delete()
            School.query.delete()
            User.query.filter(User.role.in_([UserRole.DONOR, UserRole.SCHOOL])).delete(synchronize_session=False)
            db.session.commit()
            print("✅ Database cleared")
        except Exception as e:
            db.session.rollback()
            print(f"❌ Error clearing database: {str(e)}")
            sys.exit(1)


def _get_or_create_user(email, role, full_name, password):
    user = User.find_by_email(email)
    if user:
        return user, False
    user = User(
        email=email,
        full_name=full_name,
        role=role,
        password_hash=generate_password_hash(password),
        is_active=True,
    )
    db.session.add(user)
    db.session.flush()
    return user, True


def seed_staff(admin_email, approver_email, password, dry_run=False):
    """Create one admin and one approver so allocations can be independently reviewed"""
    print("\n📝 Seeding staff accounts...")
    if dry_run:
        print(f"  [DRY RUN] Would create admin {admin_email} and approver {approver_email}")
        return

    for email, role, name in (
        (admin_email, UserRole.ADMIN, "Allocation Admin"),
        (approver_email, UserRole.APPROVER, "Handover Approver"),
    ):
        _, created = _get_or_create_user(email, role, name, password)
        if created:
            stats["staff"] += 1
            print(f"  ✅ Created {role.value}: {email}")
        else:
            print(f"  ⏭️  {role.value} '{email}' already exists, skipping")
    db.session.commit()


def seed_schools(count, dry_run=False):
    """Create schools, each with a school account and one or two open applications"""
    print(f"\n📝 Seeding {count} schools...")
    if dry_run:
        print(f"  [DRY RUN] Would create {count} schools with applications")
        return []

    schools = []
    for _ in range(count):
        province = random.choice(list(PROVINCES))
        district = random.choice(PROVINCES[province])
        name = f"{fake.last_name()} {random.choice(['Primary', 'High', 'Combined', 'Secondary'])} School"
        try:
            account, _ = _get_or_create_user(fake.unique.email(), UserRole.SCHOOL, name, "password123")
            school = School(
                user_id=account.id,
                school_name=name,
                province=province,
                district=district,
                total_students=random.randint(120, 1600),
                total_teachers=random.randint(6, 60),
                students_requiring_meals=random.randint(0, 900),
                has_electricity=random.random() > 0.2,
                has_running_water=random.random() > 0.3,
                has_library=random.random() > 0.6,
                classroom_condition=random.choice(["poor", "fair", "good"]),
            )
            db.session.add(school)
            db.session.flush()
            stats["schools"] += 1

            for _ in range(random.randint(1, 2)):
                resource_type = random.choice(list(RESOURCE_TYPES))
                items = random.sample(RESOURCE_TYPES[resource_type], k=2)
                db.session.add(
                    ResourceApplication(
                        school_id=school.id,
                        application_title=f"{items[0].capitalize()} for {name}",
                        application_type=resource_type,
                        priority_level=random.choice(PRIORITIES),
                        resources_needed=items,
                        current_situation=fake.sentence(nb_words=12),
                        expected_impact=fake.sentence(nb_words=10),
                        beneficiaries_count=random.randint(30, school.total_students),
                        needed_by_date=date.today() + timedelta(days=random.randint(14, 120)),
                        status=random.choice([ApplicationStatus.SUBMITTED, ApplicationStatus.UNDER_REVIEW]),
                    )
                )
                stats["applications"] += 1
            schools.append(school)
        except Exception as exc:  # noqa: BLE001 - keep seeding the remaining rows
            db.session.rollback()
            stats["errors"].append(f"School {name}: {exc}")

    db.session.commit()
    print(f"  ✅ {stats['schools']} schools, {stats['applications']} applications")
    return schools


def seed_donations(donor_count, dry_run=False):
    """Create donors with a mix of approved and pending donations"""
    print(f"\n📝 Seeding {donor_count} donors...")
    if dry_run:
        print(f"  [DRY RUN] Would create {donor_count} donors with donations")
        return

    for _ in range(donor_count):
        donor, created = _get_or_create_user(fake.unique.email(), UserRole.DONOR, fake.name(), "password123")
        if created:
            stats["donors"] += 1
        province = random.choice(list(PROVINCES))
        resource_type = random.choice(list(RESOURCE_TYPES))
        items = random.sample(RESOURCE_TYPES[resource_type], k=2)
        approved = random.random() > 0.3
        db.session.add(
            Donation(
                donor_id=donor.id,
                title=f"{items[0].capitalize()} and {items[1]}",
                description=fake.sentence(nb_words=14),
                donation_type=resource_type,
                items=[{"name": item, "quantity": random.randint(5, 200)} for item in items],
                condition=random.choice(["new", "good", "fair"]),
                available_quantity=random.randint(5, 200),
                city=random.choice(PROVINCES[province]),
                province=province,
                delivery_available=random.random() > 0.5,
                urgency_level=random.choice(["normal", "high", "urgent"]),
                approval_status=DonationApprovalStatus.APPROVED if approved else DonationApprovalStatus.PENDING,
                status=DonationStatus.APPROVED if approved else None,
            )
        )
        stats["donations"] += 1

    db.session.commit()
    print(f"  ✅ {stats['donations']} donations")


def seed_database(
    clear=False,
    schools=12,
    donors=8,
    admin_email="admin@example.com",
    approver_email="approver@example.com",
    password=None,
    dry_run=False,
):
    """Main seeding function"""
    print("=" * 60)
    print("Beneficiary Hub Database Seeding")
    print("=" * 60)

    if clear and not dry_run:
        clear_database()

    with app.app_context():
        db.create_all()
        if not dry_run:
            seed_staff(admin_email, approver_email, password or "admin", dry_run)
        seed_schools(schools, dry_run)
        seed_donations(donors, dry_run)

        # Print summary
        print("\n" + "=" * 60)
        print("Seeding Summary")
        print("=" * 60)
        print(f"Staff: {stats['staff']}")
        print(f"Donors: {stats['donors']}")
        print(f"Schools: {stats['schools']}")
        print(f"Applications: {stats['applications']}")
        print(f"Donations: {stats['donations']}")

        if stats["errors"]:
            print(f"\n⚠️  Errors encountered: {len(stats['errors'])}")
            for error in stats["errors"][:10]:
                print(f"  - {error}")
        else:
            print("\n✅ Seeding completed successfully!")

        if not dry_run:
            print("\nTry it:")
            print(f"  flask matching generate <donation_id> --actor {admin_email}")
            print(f"  flask matching pending --actor {approver_email}")


def main():
    """Command-line interface"""
    parser = argparse.ArgumentParser(description="Seed the database with sample data")
    parser.add_argument("--clear", action="store_true", help="Clear existing data before seeding")
    parser.add_argument("--schools", type=int, default=12, help="Number of schools (default: 12)")
    parser.add_argument("--donors", type=int, default=8, help="Number of donors (default: 8)")
    parser.add_argument("--admin-email", default="admin@example.com", help="Admin email")
    parser.add_argument("--approver-email", default="approver@example.com", help="Approver email")
    parser.add_argument("--password", help="Password for the staff accounts (default: admin)")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be created without actually creating",
    )

    args = parser.parse_args()
    seed_database(
        clear=args.clear,
        schools=args.schools,
        donors=args.donors,
        admin_email=args.admin_email,
        approver_email=args.approver_email,
        password=args.password,
        dry_run=args.dry_run,
    )


if __name__ == "__main__":
    main()
