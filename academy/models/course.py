"""Learning portal models: courses, sessions, materials, attendance and student progress."""

from datetime import datetime
from academy import db

MATERIAL_TYPES = ('document', 'video', 'link', 'text')
ATTENDANCE_STATUSES = ('present', 'absent', 'late', 'excused')


class Course(db.Model):
    """A term-long course taught by one teacher."""

    __tablename__ = 'courses'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    term_name = db.Column(db.String(100), nullable=False)  # e.g., 'Foundations'
    term_number = db.Column(db.Integer, nullable=False)
    difficulty_level = db.Column(db.String(20), nullable=True)
    duration_weeks = db.Column(db.Integer, nullable=True)
    teacher_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    teacher = db.relationship('User', backref='courses_taught')
    sessions = db.relationship('CourseSession', backref='course', lazy=True,
                               order_by='CourseSession.session_number', cascade='all, delete-orphan')

    def to_dict(self, include_sessions=False):
        data = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'term_name': self.term_name,
            'term_number': self.term_number,
            'difficulty_level': self.difficulty_level,
            'duration_weeks': self.duration_weeks,
            'teacher_id': self.teacher_id,
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat()
        }
        if include_sessions:
            data['sessions'] = [s.to_dict() for s in self.sessions]
        return data


class CourseSession(db.Model):
    __tablename__ = 'course_sessions'

    __table_args__ = (
        db.UniqueConstraint('course_id', 'session_number', name='unique_course_session'),
    )

    id = db.Column(db.Integer, primary_key=True)
    course_id = db.Column(db.Integer, db.ForeignKey('courses.id', ondelete='CASCADE'), nullable=False, index=True)
    session_number = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    duration_minutes = db.Column(db.Integer, nullable=True)
    learning_objectives = db.Column(db.JSON, default=list, nullable=False)
    is_published = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    materials = db.relationship('Material', backref='session', lazy=True,
                                order_by='Material.display_order', cascade='all, delete-orphan')

    def to_dict(self, include_materials=False):
        data = {
            'id': self.id,
            'course_id': self.course_id,
            'session_number': self.session_number,
            'title': self.title,
            'description': self.description,
            'duration_minutes': self.duration_minutes,
            'learning_objectives': self.learning_objectives or [],
            'is_published': self.is_published
        }
        if include_materials:
            data['materials'] = [m.to_dict() for m in self.materials]
        return data


class Material(db.Model):
    __tablename__ = 'materials'

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey('course_sessions.id', ondelete='CASCADE'), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    material_type = db.Column(db.String(20), nullable=False)  # document, video, link, text
    file_url = db.Column(db.String(500), nullable=True)
    video_url = db.Column(db.String(500), nullable=True)
    content_text = db.Column(db.Text, nullable=True)
    is_downloadable = db.Column(db.Boolean, default=True, nullable=False)
    display_order = db.Column(db.Integer, default=0, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'session_id': self.session_id,
            'title': self.title,
            'description': self.description,
            'material_type': self.material_type,
            'file_url': self.file_url,
            'video_url': self.video_url,
            'content_text': self.content_text,
            'is_downloadable': self.is_downloadable,
            'display_order': self.display_order
        }


class Enrollment(db.Model):
    __tablename__ = 'enrollments'

    __table_args__ = (
        db.UniqueConstraint('student_id', 'course_id', name='unique_enrollment'),
    )

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    course_id = db.Column(db.Integer, db.ForeignKey('courses.id', ondelete='CASCADE'), nullable=False, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    progress_percentage = db.Column(db.Integer, default=0, nullable=False)
    enrolled_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    completed_at = db.Column(db.DateTime, nullable=True)

    student = db.relationship('User', backref='enrollments')
    course = db.relationship('Course', backref='enrollments', lazy='joined')

    def to_dict(self):
        return {
            'id': self.id,
            'student_id': self.student_id,
            'course_id': self.course_id,
            'course': self.course.to_dict() if self.course else None,
            'is_active': self.is_active,
            'progress_percentage': self.progress_percentage,
            'enrolled_at': self.enrolled_at.isoformat(),
            'completed_at': self.completed_at.isoformat() if self.completed_at else None
        }


class SessionProgress(db.Model):
    __tablename__ = 'session_progress'

    __table_args__ = (
        db.UniqueConstraint('student_id', 'session_id', name='unique_session_progress'),
    )

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    session_id = db.Column(db.Integer, db.ForeignKey('course_sessions.id', ondelete='CASCADE'), nullable=False, index=True)
    completed = db.Column(db.Boolean, default=False, nullable=False)
    completion_date = db.Column(db.DateTime, nullable=True)
    time_spent_minutes = db.Column(db.Integer, default=0, nullable=False)
    last_accessed = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'student_id': self.student_id,
            'session_id': self.session_id,
            'completed': self.completed,
            'completion_date': self.completion_date.isoformat() if self.completion_date else None,
            'time_spent_minutes': self.time_spent_minutes,
            'last_accessed': self.last_accessed.isoformat()
        }


class Attendance(db.Model):
    """Whether a student was at one session, as recorded by the teacher."""

    __tablename__ = 'attendance'

    __table_args__ = (
        db.UniqueConstraint('student_id', 'session_id', name='unique_attendance'),
    )

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    course_id = db.Column(db.Integer, db.ForeignKey('courses.id', ondelete='CASCADE'), nullable=False, index=True)
    session_id = db.Column(db.Integer, db.ForeignKey('course_sessions.id', ondelete='CASCADE'), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False)  # present, absent, late, excused
    notes = db.Column(db.Text, nullable=True)
    recorded_by = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'student_id': self.student_id,
            'course_id': self.course_id,
            'session_id': self.session_id,
            'status': self.status,
            'notes': self.notes,
            'recorded_by': self.recorded_by,
            'updated_at': self.updated_at.isoformat()
        }


class ProgressNote(db.Model):
    __tablename__ = 'progress_notes'

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    course_id = db.Column(db.Integer, db.ForeignKey('courses.id', ondelete='CASCADE'), nullable=False, index=True)
    teacher_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    text = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    teacher = db.relationship('User', foreign_keys=[teacher_id])

    def to_dict(self):
        return {
            'id': self.id,
            'student_id': self.student_id,
            'course_id': self.course_id,
            'teacher_id': self.teacher_id,
            'teacher_name': (self.teacher.full_name or self.teacher.username) if self.teacher else None,
            'text': self.text,
            'created_at': self.created_at.isoformat()
        }
