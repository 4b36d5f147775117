"""
iam_core.db

Persistence package (SQLAlchemy async).

Responsibilities:
- Provide ORM models, engine/session setup, and repositories.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# This package is designed to be replaceable (e.g., switching DB backends) without
# rewriting the auth core or services.
