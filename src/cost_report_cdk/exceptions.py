"""Custom exception hierarchy and error handling patterns.

This module defines application-specific exceptions with context support.
"""

from typing import Any


class CostReportCdkError(Exception):
    """Base exception for Cost Report Infrastructure CDK.

    All custom exceptions should inherit from this class.
    Supports additional context via keyword arguments.
    """

    def __init__(self, message: str, **context: Any) -> None:
        """Initialize exception with message and context.

        Args:
            message: Error message
            **context: Additional context as key-value pairs
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """String representation including context."""
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message


class ValidationError(CostReportCdkError):
    """Raised when a configuration value is missing or outside its allowed set."""

    @property
    def field(self) -> str | None:
        """Name of the offending configuration field, if known."""
        return self.context.get("field")


class DependencyError(ValidationError):
    """Raised when a present resource needs a field or node that is absent."""

    @property
    def node(self) -> str | None:
        """Name of the missing resource node, if the failure is structural."""
        return self.context.get("node")


class ConfigurationError(CostReportCdkError):
    """Raised when application or deployment configuration is invalid."""

    pass


class ResourceNotFoundError(CostReportCdkError):
    """Raised when a resource node is not found in an evaluated graph."""

    pass


class ExternalProvisioningError(CostReportCdkError):
    """Raised when the cloud provider rejects a request."""

    pass
