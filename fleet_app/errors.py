"""Exceptions raised by the fleet finance write side"""


class FleetFinanceError(Exception):
    """Base exception for fleet finance errors"""
    pass


class ValidationError(FleetFinanceError, ValueError):
    """Rejected input on create/update"""
    pass


class ReferenceNotFoundError(ValidationError):
    """A referenced vehicle, employee or record does not exist"""
    pass


class DeleteConflictError(FleetFinanceError):
    """Record cannot be deleted while other records depend on it"""
    pass
