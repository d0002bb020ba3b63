"""
Domain exceptions for coder/reviewer orchestration.

Most failure modes are reported through result objects carrying a reason
string. These exceptions cover the cases a caller must be able to tell apart.
"""


class LogParseError(Exception):
    """
    Raised when an orchestration log fails structural validation.

    Distinct from generic errors so callers can choose between discarding the
    history and restarting, or aborting.
    """


class PlanParseError(Exception):
    """Raised when a plan document has malformed frontmatter."""


class PlanLoadError(Exception):
    """
    Raised when a plan file cannot be read or parsed.

    This is the one fatal case for resume: without the plan's step pointer
    there is no step to resume to.
    """

    def __init__(self, message: str, path: str | None = None):
        """
        Args:
            message: Human-readable error message
            path: Plan path that failed to load
        """
        super().__init__(message)
        self.path = path


class ConfigurationError(Exception):
    """Raised when configuration files are invalid or missing."""

    pass
