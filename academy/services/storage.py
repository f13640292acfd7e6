"""Supabase Storage service for course materials and teacher CVs.

Buckets:
- materials: session handouts uploaded by teachers (private, served via signed URLs)
- teacher-cvs: CVs attached to teacher applications (private)
"""

import os
import logging
from uuid import uuid4
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

MATERIALS_BUCKET = 'materials'
CV_BUCKET = 'teacher-cvs'
SIGNED_URL_TTL = 3600  # 1 hour

# Supabase client (lazy initialization)
_supabase_client = None


def get_supabase_client():
    """Get or create Supabase client (lazy initialization)."""
    global _supabase_client

    if _supabase_client is None:
        url = os.getenv('SUPABASE_URL')
        key = os.getenv('SUPABASE_SERVICE_KEY')

        if not url or not key:
            logger.warning('Supabase credentials not configured. Storage will not work.')
            return None

        try:
            from supabase import create_client
            _supabase_client = create_client(url, key)
            logger.info('Supabase client initialized successfully')
        except Exception as e:
            logger.error(f'Failed to initialize Supabase client: {e}')
            return None

    return _supabase_client


def is_storage_configured() -> bool:
    """Check if Supabase storage is properly configured."""
    return get_supabase_client() is not None


def upload_file(
    bucket: str,
    file_data: bytes,
    file_name: str,
    content_type: str = 'application/pdf',
    folder: Optional[str] = None
) -> Tuple[Optional[str], Optional[str]]:
    """Upload a file to Supabase Storage.

    Returns:
        Tuple of (storage_path, error_message)
        If successful: (path, None)
        If failed: (None, error_message)
    """
    client = get_supabase_client()

    if client is None:
        return None, 'Storage service not configured'

    try:
        ext = file_name.rsplit('.', 1)[-1].lower() if '.' in file_name else 'bin'
        path = f"{uuid4().hex}.{ext}"
        if folder:
            path = f"{folder}/{path}"

        logger.info(f'Uploading file to {bucket}/{path} ({content_type})')

        client.storage.from_(bucket).upload(
            path=path,
            file=file_data,
            file_options={"content-type": content_type}
        )

        logger.info(f'File uploaded successfully: {bucket}/{path}')
        return path, None

    except Exception as e:
        error_msg = str(e)
        logger.error(f'Upload failed: {error_msg}')
        return None, error_msg


def create_download_url(bucket: str, path: str, expires_in: int = SIGNED_URL_TTL) -> Tuple[Optional[str], Optional[str]]:
    """Signed, time-limited download URL for a private object."""
    client = get_supabase_client()

    if client is None:
        return None, 'Storage service not configured'

    try:
        result = client.storage.from_(bucket).create_signed_url(path, expires_in)
        url = result.get('signedURL') or result.get('signedUrl')
        if not url:
            return None, 'Storage returned no signed URL'
        return url, None
    except Exception as e:
        error_msg = str(e)
        logger.error(f'Signed URL failed for {bucket}/{path}: {error_msg}')
        return None, error_msg


def delete_file(bucket: str, path: str) -> Tuple[bool, Optional[str]]:
    """Delete a file from Supabase Storage."""
    client = get_supabase_client()

    if client is None:
        return False, 'Storage service not configured'

    try:
        logger.info(f'Deleting file from {bucket}/{path}')
        client.storage.from_(bucket).remove([path])
        return True, None
    except Exception as e:
        error_msg = str(e)
        logger.error(f'Delete failed: {error_msg}')
        return False, error_msg


def upload_material(file_data: bytes, file_name: str, content_type: str, course_id: int) -> Tuple[Optional[str], Optional[str]]:
    """Upload a session material under its course folder."""
    return upload_file(MATERIALS_BUCKET, file_data, file_name, content_type, folder=f"course-{course_id}")


def upload_cv(file_data: bytes, file_name: str, content_type: str) -> Tuple[Optional[str], Optional[str]]:
    """Upload a teacher applicant's CV."""
    return upload_file(CV_BUCKET, file_data, file_name, content_type)
