"""Exception classes for the filter pipeline engine."""


class FilterStackError(Exception):
    """Base exception for pipeline engine errors."""

    pass


class InvalidParamsError(FilterStackError):
    """Raised when a filter instance's params do not match its kind."""

    pass


class PipelineError(FilterStackError):
    """Raised for pipeline structure errors (duplicate or unknown ids)."""

    pass
