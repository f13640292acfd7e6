"""Database models for the academy application."""

from .user import User
from .term import Term, TermFeedback, TermEvent
from .course import Course, CourseSession, Material, Enrollment, SessionProgress, Attendance, ProgressNote
from .application import Challenger, TeacherApplication

__all__ = [
    'User',
    'Term', 'TermFeedback', 'TermEvent',
    'Course', 'CourseSession', 'Material', 'Enrollment', 'SessionProgress', 'Attendance', 'ProgressNote',
    'Challenger', 'TeacherApplication',
]
