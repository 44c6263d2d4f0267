# File: warehouse/errors.py

"""
Error kinds raised while building the insurance star schema.

Structural errors (ConfigurationError, DanglingReferenceError) abort the whole
load. Record-level errors (subclasses of RecordRejectedError) only reject the
offending staging row; the loader collects them into the LoadReport.
"""


class StarSchemaError(Exception):
    """Base class for every loader error."""


class ConfigurationError(StarSchemaError):
    """A bucket table is malformed (empty, unsorted, overlapping or gapped)."""


class DanglingReferenceError(StarSchemaError):
    """A fact row points at a dimension key that does not exist (or is NULL)."""


class RecordRejectedError(StarSchemaError):
    """A single raw record cannot become a fact row."""

    def __init__(self, field: str, value, message: str):
        super().__init__(message)
        self.field = field
        self.value = value


class NullFieldError(RecordRejectedError):
    def __init__(self, field: str):
        super().__init__(field, None, f"{field} is NULL")


class OutOfRangeError(RecordRejectedError):
    def __init__(self, field: str, value, message: str = ""):
        super().__init__(field, value, message or f"{field}={value} is outside every defined range")


class UnknownMemberError(RecordRejectedError):
    def __init__(self, field: str, value):
        super().__init__(field, value, f"{field}={value!r} is not a member of dim_{field}")
