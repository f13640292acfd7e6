"""Public sign-up forms: challenger (student) registrations and teacher applications."""

from datetime import datetime
from academy import db

APPLICATION_STATUSES = ('pending', 'approved', 'rejected')


class Challenger(db.Model):
    """Student interest form submitted from the marketing site."""

    __tablename__ = 'challengers'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    full_name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(120), nullable=False, index=True)
    age = db.Column(db.Integer, nullable=True)
    gender = db.Column(db.String(20), nullable=True)
    phone_number = db.Column(db.String(30), nullable=True)
    city = db.Column(db.String(80), nullable=True)
    country = db.Column(db.String(80), nullable=True)
    level = db.Column(db.String(30), nullable=True)
    guardian_email = db.Column(db.String(120), nullable=True)
    referral_source = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    EXPORT_FIELDS = (
        'id', 'full_name', 'email', 'age', 'gender', 'phone_number', 'city',
        'country', 'level', 'guardian_email', 'referral_source', 'created_at',
    )

    def to_dict(self):
        data = {field: getattr(self, field) for field in self.EXPORT_FIELDS}
        data['created_at'] = self.created_at.isoformat()
        data['user_id'] = self.user_id
        return data


class TeacherApplication(db.Model):
    __tablename__ = 'teacher_applications'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    full_name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(120), nullable=False, index=True)
    phone_number = db.Column(db.String(30), nullable=True)
    specialization = db.Column(db.String(120), nullable=True)
    experience_years = db.Column(db.Integer, nullable=True)
    education = db.Column(db.Text, nullable=True)
    cover_letter = db.Column(db.Text, nullable=True)
    cv_url = db.Column(db.String(500), nullable=True)
    status = db.Column(db.String(20), default='pending', nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'full_name': self.full_name,
            'email': self.email,
            'phone_number': self.phone_number,
            'specialization': self.specialization,
            'experience_years': self.experience_years,
            'education': self.education,
            'cover_letter': self.cover_letter,
            'cv_url': self.cv_url,
            'status': self.status,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat()
        }
