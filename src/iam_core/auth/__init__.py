"""
iam_core.auth

Authentication and authorization.

Responsibilities:
- Token issuing/verification, password hashing and API keys.
- Resolving credentials into a `Principal` and checking route role requirements.
- FastAPI guard dependencies that tie both to the audit trail.
"""

# Package marker.
