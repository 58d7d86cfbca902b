"""
Domain errors raised by the core and mapped to HTTP statuses by the routers
"""


class ArenaError(Exception):
    """Base class for all session errors"""
    status_code = 500


class ValidationError(ArenaError):
    """Empty or invalid input (blank team name, unknown challenge, bad duration)"""
    status_code = 400


class AuthorizationError(ArenaError):
    """Caller is not the operator, or a guarded action was not unlocked"""
    status_code = 401


class NotFoundError(ArenaError):
    """Team, document or pending challenge does not exist"""
    status_code = 404


class SessionClosedError(ArenaError):
    """Action attempted outside its valid state window"""
    status_code = 409


class StoreUnavailableError(ArenaError):
    """Document store read/write failed or timed out"""
    status_code = 503


class PreconditionFailed(ArenaError):
    """Conditional store update found the document in an unexpected state"""
    status_code = 409
