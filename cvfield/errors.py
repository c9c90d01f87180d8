"""
Exceptions raised by cvfield.

All of them are configuration or construction failures: the core does no
I/O, so nothing here is transient or worth retrying.
"""


class CVFieldError(Exception):
    """Base class for cvfield errors."""
    pass


class OutOfRange(CVFieldError, IndexError):
    """Raised when a bucket coordinate falls outside the spatial index grid."""
    pass


class InvalidConfiguration(CVFieldError, ValueError):
    """Raised when counts, sizes or budgets are below their required minimum."""
    pass
