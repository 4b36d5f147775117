"""
iam_core.api.__main__

Entrypoint: `python -m iam_core.api` (or the `iam-core` console script).

Settings come from `IAM_*` environment variables; uvicorn's own logging config is
disabled so every line goes through structlog.
"""

from __future__ import annotations

import uvicorn

from iam_core.api.app import create_app
from iam_core.settings import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        create_app(settings=settings),
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,
        # Client IPs on the audit trail come from X-Forwarded-For when behind a proxy.
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()
