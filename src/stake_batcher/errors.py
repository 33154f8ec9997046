"""
Run-level error taxonomy.

Fatal errors stop the whole run before any group is attempted. Everything
else raised while processing a group is recorded as that group's failure.
"""


class BatcherError(Exception):
    """Base class for all batcher errors."""
    pass


class FatalRunError(BatcherError):
    """Raised when the run cannot proceed at all."""
    pass


class ConfigValidationError(FatalRunError):
    """Raised when vault ids or credentials are missing or invalid."""

    def __init__(self, errors):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__(f"Invalid configuration: {', '.join(self.errors)}")


class ResolutionError(FatalRunError):
    """Raised when a vault id cannot be resolved to an address."""
    pass


class EmptyInputError(FatalRunError):
    """Raised when there are no (valid) stake accounts to process."""
    pass


class DirectoryError(FatalRunError):
    """Raised when the account directory cannot list stake accounts."""
    pass
