# beneficiary_hub/models/school.py

from .base import BaseModel, db


class School(BaseModel):
    """Profile of a school that can file resource applications"""

    __tablename__ = "schools"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, unique=True)
    school_name = db.Column(db.String(200), nullable=False, index=True)
    province = db.Column(db.String(100), nullable=True, index=True)
    district = db.Column(db.String(100), nullable=True)
    email = db.Column(db.String(255), nullable=True)

    # Size and needs
    total_students = db.Column(db.Integer, nullable=True)
    total_teachers = db.Column(db.Integer, nullable=True)
    students_requiring_meals = db.Column(db.Integer, nullable=True)

    # Facilities
    has_electricity = db.Column(db.Boolean, default=False, nullable=False)
    has_running_water = db.Column(db.Boolean, default=False, nullable=False)
    has_library = db.Column(db.Boolean, default=False, nullable=False)
    classroom_condition = db.Column(db.String(50), nullable=True)

    # Relationships
    user = db.relationship("User", back_populates="school")
    applications = db.relationship("ResourceApplication", back_populates="school")

    def __repr__(self):
        return f"<School {self.school_name}>"

    @property
    def contact_email(self):
        """Email used for notifications: the profile email, else the account email"""
        if self.email:
            return self.email
        return self.user.email if self.user else None

    def to_ranker_context(self):
        """School profile as sent to the candidate ranker"""
        return {
            "id": self.id,
            "school_name": self.school_name,
            "province": self.province,
            "district": self.district,
            "total_students": self.total_students,
            "total_teachers": self.total_teachers,
            "students_requiring_meals": self.students_requiring_meals,
            "has_electricity": self.has_electricity,
            "has_running_water": self.has_running_water,
            "has_library": self.has_library,
            "classroom_condition": self.classroom_condition,
        }
