"""Learning portal routes for students (challengers) and teachers."""

from flask import Blueprint, request, jsonify
from datetime import datetime
import logging

from academy import db
from academy.models import User, Course, CourseSession, Material, Enrollment, SessionProgress, Attendance, ProgressNote
from academy.models.course import MATERIAL_TYPES, ATTENDANCE_STATUSES
from academy.services.storage import (
    MATERIALS_BUCKET,
    create_download_url,
    delete_file,
    is_storage_configured,
    upload_material,
)
from academy.utils import role_required

portal_bp = Blueprint('portal', __name__)
logger = logging.getLogger(__name__)

MATERIAL_MAX_SIZE = 20 * 1024 * 1024  # 20MB
MATERIAL_EXTENSIONS = {'pdf', 'docx', 'pptx', 'xlsx', 'png', 'jpg', 'jpeg', 'mp3', 'mp4', 'txt'}
PROGRESS_NOTE_MAX_LENGTH = 5000


def _enrollment(student_id, course_id):
    return Enrollment.query.filter_by(student_id=student_id, course_id=course_id, is_active=True).first()


def _is_admin(user_id):
    user = db.session.get(User, user_id)
    return user is not None and user.is_admin


def _teaches(user_id, course):
    return course.teacher_id == user_id or _is_admin(user_id)


def update_course_progress(student_id, course_id):
    """Recompute an enrollment's progress from completed published sessions."""
    enrollment = _enrollment(student_id, course_id)
    if enrollment is None:
        return None

    session_ids = [s.id for s in CourseSession.query.filter_by(course_id=course_id, is_published=True).all()]
    if not session_ids:
        enrollment.progress_percentage = 0
        return enrollment

    completed = SessionProgress.query.filter(
        SessionProgress.student_id == student_id,
        SessionProgress.session_id.in_(session_ids),
        SessionProgress.completed.is_(True)
    ).count()

    enrollment.progress_percentage = round(100 * completed / len(session_ids))
    if enrollment.progress_percentage == 100 and enrollment.completed_at is None:
        enrollment.completed_at = datetime.utcnow()
    elif enrollment.progress_percentage < 100:
        enrollment.completed_at = None
    return enrollment


# ============================================================================
# STUDENT PORTAL
# ============================================================================

@portal_bp.route('/student/courses', methods=['GET'])
@role_required('challenger')
def student_courses(current_user_id):
    enrollments = Enrollment.query.filter_by(student_id=current_user_id, is_active=True).all()
    return jsonify({
        'enrollments': [e.to_dict() for e in enrollments],
        'total': len(enrollments)
    }), 200


@portal_bp.route('/student/courses/<int:course_id>', methods=['GET'])
@role_required('challenger')
def student_course_detail(current_user_id, course_id):
    course = db.session.get(Course, course_id)
    if course is None or _enrollment(current_user_id, course_id) is None:
        return jsonify({'error': 'Course not found'}), 404

    progress = {
        p.session_id: p.to_dict()
        for p in SessionProgress.query.filter_by(student_id=current_user_id).all()
    }
    sessions = []
    for session in course.sessions:
        if not session.is_published:
            continue
        item = session.to_dict()
        item['progress'] = progress.get(session.id)
        sessions.append(item)

    data = course.to_dict()
    data['sessions'] = sessions
    return jsonify(data), 200


def _student_session_or_error(student_id, session_id):
    session = db.session.get(CourseSession, session_id)
    if session is None or not session.is_published or _enrollment(student_id, session.course_id) is None:
        return None, (jsonify({'error': 'Session not found'}), 404)
    return session, None


@portal_bp.route('/student/sessions/<int:session_id>/materials', methods=['GET'])
@role_required('challenger')
def student_session_materials(current_user_id, session_id):
    session, error = _student_session_or_error(current_user_id, session_id)
    if error:
        return error
    return jsonify(session.to_dict(include_materials=True)), 200


@portal_bp.route('/student/materials/<int:material_id>/download', methods=['GET'])
@role_required('challenger')
def student_download_material(current_user_id, material_id):
    material = db.session.get(Material, material_id)
    if material is None:
        return jsonify({'error': 'Material not found'}), 404
    session, error = _student_session_or_error(current_user_id, material.session_id)
    if error:
        return error
    if not material.file_url or not material.is_downloadable:
        return jsonify({'error': 'This material cannot be downloaded'}), 400

    url, error = create_download_url(MATERIALS_BUCKET, material.file_url)
    if error:
        return jsonify({'error': error}), 503
    return jsonify({'url': url}), 200


@portal_bp.route('/student/sessions/<int:session_id>/progress', methods=['POST'])
@role_required('challenger')
def record_session_progress(current_user_id, session_id):
    """Mark a session completed and/or add time spent on it."""
    try:
        session, error = _student_session_or_error(current_user_id, session_id)
        if error:
            return error

        data = request.get_json(silent=True) or {}
        completed = data.get('completed')
        minutes = data.get('time_spent_minutes', 0)
        if completed is not None and not isinstance(completed, bool):
            return jsonify({'error': 'completed must be a boolean'}), 400
        if not isinstance(minutes, int) or isinstance(minutes, bool) or not 0 <= minutes <= 600:
            return jsonify({'error': 'time_spent_minutes must be an integer between 0 and 600'}), 400

        progress = SessionProgress.query.filter_by(student_id=current_user_id, session_id=session_id).first()
        if progress is None:
            progress = SessionProgress(student_id=current_user_id, session_id=session_id,
                                       completed=False, time_spent_minutes=0)
            db.session.add(progress)

        progress.time_spent_minutes = (progress.time_spent_minutes or 0) + minutes
        progress.last_accessed = datetime.utcnow()
        if completed is not None:
            progress.completed = completed
            progress.completion_date = datetime.utcnow() if completed else None

        db.session.flush()
        enrollment = update_course_progress(current_user_id, session.course_id)
        db.session.commit()

        return jsonify({
            'progress': progress.to_dict(),
            'course_progress': enrollment.progress_percentage if enrollment else None
        }), 200
    except Exception:
        db.session.rollback()
        raise


# ============================================================================
# TEACHER PORTAL
# ============================================================================

@portal_bp.route('/teacher/courses', methods=['GET'])
@role_required('teacher')
def teacher_courses(current_user_id):
    query = Course.query
    if not _is_admin(current_user_id):
        query = query.filter_by(teacher_id=current_user_id)
    courses = query.order_by(Course.term_number).all()
    return jsonify({
        'courses': [c.to_dict(include_sessions=True) for c in courses],
        'total': len(courses)
    }), 200


@portal_bp.route('/teacher/courses', methods=['POST'])
@role_required('teacher')
def create_course(current_user_id):
    try:
        data = request.get_json(silent=True) or {}
        title = (data.get('title') or '').strip()
        term_name = (data.get('term_name') or '').strip()
        term_number = data.get('term_number')

        if not title or not term_name:
            return jsonify({'error': 'title and term_name are required'}), 400
        if not isinstance(term_number, int) or isinstance(term_number, bool) or term_number < 1:
            return jsonify({'error': 'term_number must be a positive integer'}), 400

        course = Course(
            title=title[:200],
            term_name=term_name[:100],
            term_number=term_number,
            description=data.get('description'),
            difficulty_level=data.get('difficulty_level'),
            duration_weeks=data.get('duration_weeks'),
            teacher_id=current_user_id,
        )
        db.session.add(course)
        db.session.commit()
        return jsonify({'message': 'Course created', 'course': course.to_dict()}), 201
    except Exception:
        db.session.rollback()
        raise


def _teacher_course_or_error(user_id, course_id):
    course = db.session.get(Course, course_id)
    if course is None or not _teaches(user_id, course):
        return None, (jsonify({'error': 'Course not found'}), 404)
    return course, None


def _teacher_session_or_error(user_id, session_id):
    session = db.session.get(CourseSession, session_id)
    if session is None or not _teaches(user_id, session.course):
        return None, (jsonify({'error': 'Session not found'}), 404)
    return session, None


def _session_field_errors(data):
    """Type checks for the editable session fields present in data."""
    if 'title' in data:
        title = data['title']
        if not isinstance(title, str) or not title.strip():
            return 'title must be a non-empty string'
    if data.get('description') is not None and not isinstance(data['description'], str):
        return 'description must be a string'
    duration = data.get('duration_minutes')
    if duration is not None and (not isinstance(duration, int) or isinstance(duration, bool) or duration < 0):
        return 'duration_minutes must be a non-negative integer'
    if 'learning_objectives' in data:
        objectives = data['learning_objectives']
        if not isinstance(objectives, list) or not all(isinstance(o, str) for o in objectives):
            return 'learning_objectives must be a list of strings'
    return None


def _display_order(value):
    """Parse display_order from JSON or form data; None when it is not a non-negative whole number."""
    if value in (None, ''):
        return 0
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        return int(value) if value.isdigit() else None
    if isinstance(value, int) and value >= 0:
        return value
    return None


@portal_bp.route('/teacher/courses/<int:course_id>/sessions', methods=['POST'])
@role_required('teacher')
def create_session(current_user_id, course_id):
    try:
        course, error = _teacher_course_or_error(current_user_id, course_id)
        if error:
            return error

        data = request.get_json(silent=True) or {}
        number = data.get('session_number')

        if not data.get('title'):
            return jsonify({'error': 'title is required'}), 400
        field_error = _session_field_errors(data)
        if field_error:
            return jsonify({'error': field_error}), 400
        if not isinstance(number, int) or isinstance(number, bool) or number < 1:
            return jsonify({'error': 'session_number must be a positive integer'}), 400
        title = data['title'].strip()
        objectives = data.get('learning_objectives', [])
        if CourseSession.query.filter_by(course_id=course.id, session_number=number).first():
            return jsonify({'error': f'Session {number} already exists'}), 409

        session = CourseSession(
            course_id=course.id,
            session_number=number,
            title=title[:200],
            description=data.get('description'),
            duration_minutes=data.get('duration_minutes'),
            learning_objectives=objectives,
            is_published=bool(data.get('is_published', False)),
        )
        db.session.add(session)
        db.session.commit()
        return jsonify({'message': 'Session created', 'session': session.to_dict()}), 201
    except Exception:
        db.session.rollback()
        raise


@portal_bp.route('/teacher/sessions/<int:session_id>', methods=['PUT'])
@role_required('teacher')
def update_session(current_user_id, session_id):
    session, error = _teacher_session_or_error(current_user_id, session_id)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    field_error = _session_field_errors(data)
    if field_error:
        return jsonify({'error': field_error}), 400
    if 'is_published' in data and not isinstance(data['is_published'], bool):
        return jsonify({'error': 'is_published must be a boolean'}), 400

    if 'title' in data:
        session.title = data['title'].strip()[:200]
    for field in ('description', 'duration_minutes', 'learning_objectives', 'is_published'):
        if field in data:
            setattr(session, field, data[field])

    db.session.commit()
    return jsonify({'message': 'Session updated', 'session': session.to_dict()}), 200


@portal_bp.route('/teacher/sessions/<int:session_id>/materials', methods=['POST'])
@role_required('teacher')
def add_material(current_user_id, session_id):
    """Attach material to a session.

    JSON body for links, videos and inline text; multipart form data with a
    'file' part for documents, which are stored in the materials bucket.
    """
    try:
        session, error = _teacher_session_or_error(current_user_id, session_id)
        if error:
            return error

        is_upload = bool(request.content_type and request.content_type.startswith('multipart/form-data'))
        data = request.form.to_dict() if is_upload else (request.get_json(silent=True) or {})

        title = (data.get('title') or '').strip()
        material_type = 'document' if is_upload else data.get('material_type')
        if not title:
            return jsonify({'error': 'title is required'}), 400
        if material_type not in MATERIAL_TYPES:
            return jsonify({'error': f'material_type must be one of: {", ".join(MATERIAL_TYPES)}'}), 400
        display_order = _display_order(data.get('display_order'))
        if display_order is None:
            return jsonify({'error': 'display_order must be a non-negative whole number'}), 400

        material = Material(
            session_id=session.id,
            title=title[:200],
            description=data.get('description'),
            material_type=material_type,
            display_order=display_order,
        )

        if is_upload:
            upload = request.files.get('file')
            if upload is None or not upload.filename:
                return jsonify({'error': 'No file provided'}), 400
            ext = upload.filename.rsplit('.', 1)[-1].lower() if '.' in upload.filename else ''
            if ext not in MATERIAL_EXTENSIONS:
                return jsonify({'error': f'File type .{ext} is not allowed'}), 400
            file_data = upload.read()
            if len(file_data) > MATERIAL_MAX_SIZE:
                return jsonify({'error': 'File must be smaller than 20MB'}), 400
            if not is_storage_configured():
                return jsonify({'error': 'File uploads are not available right now'}), 503
            path, upload_error = upload_material(
                file_data, upload.filename, upload.mimetype or 'application/octet-stream', session.course_id
            )
            if upload_error:
                return jsonify({'error': f'Upload failed: {upload_error}'}), 502
            material.file_url = path
        elif material_type == 'video':
            material.video_url = data.get('video_url')
            if not material.video_url:
                return jsonify({'error': 'video_url is required'}), 400
        elif material_type == 'link':
            material.file_url = data.get('url')
            material.is_downloadable = False
            if not material.file_url:
                return jsonify({'error': 'url is required'}), 400
        elif material_type == 'text':
            material.content_text = data.get('content_text')
            material.is_downloadable = False
            if not material.content_text:
                return jsonify({'error': 'content_text is required'}), 400
        else:
            return jsonify({'error': 'Documents must be uploaded as multipart form data'}), 400

        db.session.add(material)
        db.session.commit()
        return jsonify({'message': 'Material added', 'material': material.to_dict()}), 201
    except Exception:
        db.session.rollback()
        raise


@portal_bp.route('/teacher/materials/<int:material_id>', methods=['DELETE'])
@role_required('teacher')
def delete_material(current_user_id, material_id):
    material = db.session.get(Material, material_id)
    if material is None or not _teaches(current_user_id, material.session.course):
        return jsonify({'error': 'Material not found'}), 404

    if material.material_type == 'document' and material.file_url:
        ok, error = delete_file(MATERIALS_BUCKET, material.file_url)
        if not ok:
            logger.warning(f"Could not delete stored file for material {material_id}: {error}")

    db.session.delete(material)
    db.session.commit()
    return jsonify({'message': 'Material deleted'}), 200


@portal_bp.route('/teacher/courses/<int:course_id>/students', methods=['GET'])
@role_required('teacher')
def course_students(current_user_id, course_id):
    course, error = _teacher_course_or_error(current_user_id, course_id)
    if error:
        return error

    enrollments = Enrollment.query.filter_by(course_id=course.id, is_active=True).all()
    students = []
    for enrollment in enrollments:
        student = enrollment.student
        students.append({
            'student_id': student.id,
            'full_name': student.full_name or student.username,
            'email': student.email,
            'progress_percentage': enrollment.progress_percentage,
            'enrolled_at': enrollment.enrolled_at.isoformat(),
            'completed_at': enrollment.completed_at.isoformat() if enrollment.completed_at else None,
        })
    return jsonify({'students': students, 'total': len(students)}), 200


@portal_bp.route('/teacher/courses/<int:course_id>/enrollments', methods=['POST'])
@role_required('teacher')
def enroll_student(current_user_id, course_id):
    try:
        course, error = _teacher_course_or_error(current_user_id, course_id)
        if error:
            return error

        data = request.get_json(silent=True) or {}
        student = db.session.get(User, data.get('student_id')) if data.get('student_id') else None
        if student is None or student.role != 'challenger':
            return jsonify({'error': 'student_id must refer to a challenger account'}), 400

        enrollment = Enrollment.query.filter_by(student_id=student.id, course_id=course.id).first()
        if enrollment and enrollment.is_active:
            return jsonify({'error': 'Student is already enrolled'}), 409
        if enrollment:
            enrollment.is_active = True
        else:
            enrollment = Enrollment(student_id=student.id, course_id=course.id)
            db.session.add(enrollment)

        db.session.commit()
        return jsonify({'message': 'Student enrolled', 'enrollment': enrollment.to_dict()}), 201
    except Exception:
        db.session.rollback()
        raise


# ============================================================================
# ATTENDANCE AND PROGRESS NOTES
# ============================================================================

def _attendance_row(enrollment, record):
    student = enrollment.student
    return {
        'student_id': student.id,
        'full_name': student.full_name or student.username,
        'status': record.status if record else None,
        'notes': record.notes if record else None,
        'recorded_by': record.recorded_by if record else None,
    }


def _attendance_payload(session):
    recorded = {a.student_id: a for a in Attendance.query.filter_by(session_id=session.id).all()}
    enrollments = Enrollment.query.filter_by(course_id=session.course_id, is_active=True).all()
    return {
        'session_id': session.id,
        'attendance': [_attendance_row(e, recorded.get(e.student_id)) for e in enrollments],
    }


@portal_bp.route('/teacher/sessions/<int:session_id>/attendance', methods=['GET'])
@role_required('teacher')
def session_attendance(current_user_id, session_id):
    """Every enrolled student with the status recorded for this session, if any."""
    session, error = _teacher_session_or_error(current_user_id, session_id)
    if error:
        return error

    return jsonify(_attendance_payload(session)), 200


@portal_bp.route('/teacher/sessions/<int:session_id>/attendance', methods=['PUT'])
@role_required('teacher')
def save_attendance(current_user_id, session_id):
    """Record attendance for a session.

    Body: {"attendance": [{"student_id": 3, "status": "late", "notes": "bus"}]}
    Rows already saved for a student are overwritten. Nothing is written
    unless every row is valid.
    """
    try:
        session, error = _teacher_session_or_error(current_user_id, session_id)
        if error:
            return error

        data = request.get_json(silent=True) or {}
        rows = data.get('attendance')
        if not isinstance(rows, list) or not rows:
            return jsonify({'error': 'attendance must be a non-empty list'}), 400

        enrolled = {
            e.student_id for e in Enrollment.query.filter_by(course_id=session.course_id, is_active=True).all()
        }
        seen = set()
        for row in rows:
            if not isinstance(row, dict):
                return jsonify({'error': 'Each attendance entry must be an object'}), 400
            student_id = row.get('student_id')
            if not isinstance(student_id, int) or isinstance(student_id, bool) or student_id not in enrolled:
                return jsonify({'error': f'Student {student_id} is not enrolled in this course'}), 400
            if student_id in seen:
                return jsonify({'error': f'Student {student_id} is listed twice'}), 400
            seen.add(student_id)
            if row.get('status') not in ATTENDANCE_STATUSES:
                return jsonify({'error': f'status must be one of: {", ".join(ATTENDANCE_STATUSES)}'}), 400
            if row.get('notes') is not None and not isinstance(row['notes'], str):
                return jsonify({'error': 'notes must be a string'}), 400

        existing = {a.student_id: a for a in Attendance.query.filter_by(session_id=session.id).all()}
        for row in rows:
            record = existing.get(row['student_id'])
            if record is None:
                record = Attendance(student_id=row['student_id'], course_id=session.course_id, session_id=session.id)
                db.session.add(record)
            record.status = row['status']
            record.notes = (row.get('notes') or '').strip()[:1000] or None
            record.recorded_by = current_user_id

        db.session.commit()
        logger.info(f"Attendance saved for session {session.id}: {len(rows)} students")
        return jsonify(_attendance_payload(session)), 200
    except Exception:
        db.session.rollback()
        raise


@portal_bp.route('/student/courses/<int:course_id>/attendance', methods=['GET'])
@role_required('challenger')
def student_attendance(current_user_id, course_id):
    if _enrollment(current_user_id, course_id) is None:
        return jsonify({'error': 'Course not found'}), 404

    records = Attendance.query.filter_by(student_id=current_user_id, course_id=course_id).all()
    summary = {status: 0 for status in ATTENDANCE_STATUSES}
    for record in records:
        summary[record.status] = summary.get(record.status, 0) + 1
    return jsonify({
        'attendance': [r.to_dict() for r in records],
        'summary': summary,
    }), 200


def _course_student_or_error(user_id, course_id, student_id):
    course, error = _teacher_course_or_error(user_id, course_id)
    if error:
        return None, error
    if Enrollment.query.filter_by(student_id=student_id, course_id=course.id).first() is None:
        return None, (jsonify({'error': 'Student not found in this course'}), 404)
    return course, None


@portal_bp.route('/teacher/courses/<int:course_id>/students/<int:student_id>/notes', methods=['GET'])
@role_required('teacher')
def list_progress_notes(current_user_id, course_id, student_id):
    course, error = _course_student_or_error(current_user_id, course_id, student_id)
    if error:
        return error

    notes = ProgressNote.query.filter_by(course_id=course.id, student_id=student_id) \
        .order_by(ProgressNote.created_at.desc(), ProgressNote.id.desc()).all()
    return jsonify({'notes': [n.to_dict() for n in notes], 'total': len(notes)}), 200


@portal_bp.route('/teacher/courses/<int:course_id>/students/<int:student_id>/notes', methods=['POST'])
@role_required('teacher')
def add_progress_note(current_user_id, course_id, student_id):
    try:
        course, error = _course_student_or_error(current_user_id, course_id, student_id)
        if error:
            return error

        data = request.get_json(silent=True) or {}
        text = data.get('text')
        if not isinstance(text, str) or not text.strip():
            return jsonify({'error': 'text is required'}), 400
        if len(text) > PROGRESS_NOTE_MAX_LENGTH:
            return jsonify({'error': f'text must be less than {PROGRESS_NOTE_MAX_LENGTH} characters'}), 400

        note = ProgressNote(student_id=student_id, course_id=course.id, teacher_id=current_user_id,
                            text=text.strip())
        db.session.add(note)
        db.session.commit()
        return jsonify({'message': 'Note added', 'note': note.to_dict()}), 201
    except Exception:
        db.session.rollback()
        raise
