"""
iam_core.api.routers

Router modules mounted by `iam_core.api.app.create_app`.
"""

# Package marker.
