"""
iam_core.services

Service-layer package.

Responsibilities:
- Own transaction boundaries and persistence decisions for accounts and clients.
- Call into the auth core (passwords, tokens, audit) at explicit boundaries.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Services take an `IdentityStore` and plain values; routers translate their
# errors into HTTP responses.
