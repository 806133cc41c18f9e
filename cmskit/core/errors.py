"""Exceptions raised by cmskit.

Storage and routing failures are not wrapped: they surface as the native
SQLAlchemy or FastAPI error.
"""


class CmsError(Exception):
    """Base class for cmskit errors."""


class InvalidSchema(CmsError):
    """A resource schema conflicts with an existing registration or is malformed."""


class RecordNotFound(CmsError, LookupError):
    """No row matches the requested id."""

    def __init__(self, table: str, record_id):
        self.table = table
        self.record_id = record_id
        super().__init__(f"{table} with id {record_id} not found")


class OperationDisabled(CmsError):
    """The controller's index options turn this operation off."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Operation '{operation}' is disabled for this module")
