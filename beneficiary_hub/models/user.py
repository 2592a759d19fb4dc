# beneficiary_hub/models/user.py

from flask import current_app
from flask_login import UserMixin
from sqlalchemy import Enum
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import check_password_hash

from .base import BaseModel, db, enum_values
from .enums import UserRole


class User(UserMixin, BaseModel):
    """Account acting on the platform (admin, approver, donor or school)"""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    full_name = db.Column(db.String(200), nullable=True)
    password_hash = db.Column(db.String(255), nullable=True)
    role = db.Column(
        Enum(UserRole, name="user_role_enum", values_callable=enum_values),
        nullable=False,
        index=True,
    )
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    # Relationships
    school = db.relationship("School", back_populates="user", uselist=False)
    donations = db.relationship("Donation", back_populates="donor", foreign_keys="Donation.donor_id")

    def __repr__(self):
        return f"<User {self.email} role={self.role.value if self.role else None}>"

    def check_password(self, password):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @staticmethod
    def find_by_email(email):
        """Find user by email with error handling"""
        try:
            return User.query.filter_by(email=email).first()
        except SQLAlchemyError as e:
            current_app.logger.error(f"Database error finding user by email {email}: {str(e)}")
            return None
