"""
iam_core.audit

Audit trail package.

Responsibilities:
- Classify mutating requests into named actions.
- Sanitize captured payloads.
- Persist audit records off the request path (best-effort).
"""

# Package marker.
