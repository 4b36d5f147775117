from __future__ import annotations


class ServiceError(Exception):
    pass


class NotFound(ServiceError, LookupError):
    pass


class Conflict(ServiceError):
    pass
