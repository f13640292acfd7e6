"""Shared utilities for the academy backend."""

from academy.utils.auth import (
    issue_token,
    token_required,
    token_optional,
    role_required,
    admin_required,
)

__all__ = [
    'issue_token',
    'token_required',
    'token_optional',
    'role_required',
    'admin_required',
]
