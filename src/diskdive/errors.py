"""Exceptions raised by diskdive."""


class DiskDiveError(Exception):
    """Base class for diskdive errors."""


class InvalidInput(DiskDiveError, ValueError):
    """A path argument was empty or not absolute."""


class Unreadable(DiskDiveError, OSError):
    """The root of a scan could not be listed."""


class MeasurementUnavailable(DiskDiveError):
    """Every sizing strategy failed for a path."""


class DeleteFailed(DiskDiveError):
    """A confirmed deletion could not be completed."""
