"""
iam_core.api

HTTP surface of the IAM core service.

Responsibilities:
- FastAPI app factory and router modules.
- API-layer dependency wiring and request/response models.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Routers stay thin: request validation, a guard, then delegation to services.
