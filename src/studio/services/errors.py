"""
Service Errors

Business-rule violations raised by services. All are ValueErrors so
callers that only care about "rejected" can catch one type; routes map
the subclasses onto HTTP statuses.
"""


class NotFoundError(ValueError):
    """Referenced entity does not exist (404)"""


class ForbiddenError(ValueError):
    """Caller may not perform the action (403)"""


class ConflictError(ValueError):
    """Action conflicts with current state (409)"""
