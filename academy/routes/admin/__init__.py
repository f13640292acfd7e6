"""Admin routes package.

- terms: lexicon CRUD, status workflow, manual and batch translations
- feedback: reader feedback review and lexicon analytics
- people: users, teacher applications, challenger export
"""

from flask import Blueprint

admin_bp = Blueprint('admin', __name__)

# Import all route modules (registers routes on admin_bp)
from academy.routes.admin import terms  # noqa: E402,F401
from academy.routes.admin import feedback  # noqa: E402,F401
from academy.routes.admin import people  # noqa: E402,F401
