"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class NotFoundError(DomainException):
    """Entity does not exist or is not owned by the caller"""

    pass


class UnauthorizedError(DomainException):
    """Caller identity cannot be established or resolved to a user"""

    pass


class InvalidArgumentError(DomainException):
    """Request is malformed or inconsistent with stored configuration"""

    pass


class ConflictError(DomainException):
    """Operation conflicts with current state (e.g. already onboarded)"""

    pass


class UpstreamServiceError(DomainException):
    """An external collaborator is unreachable or misbehaving"""

    pass


class TransactionSourceError(UpstreamServiceError):
    """Transaction provider returned an error or is unavailable"""

    pass


class NotificationError(UpstreamServiceError):
    """Push notification delivery failed"""

    pass
