"""Unit tests for the exception hierarchy."""
from cost_report_cdk.exceptions import (
    ConfigurationError,
    CostReportCdkError,
    DependencyError,
    ExternalProvisioningError,
    ResourceNotFoundError,
    ValidationError,
)


def test_context_in_message():
    error = ValidationError("Invalid value", field="format")

    assert str(error) == "Invalid value (field=format)"
    assert error.field == "format"


def test_message_without_context():
    assert str(ConfigurationError("No config")) == "No config"


def test_dependency_error_names_node():
    error = DependencyError("missing", node="kms_key", dependent="bucket_encryption")

    assert isinstance(error, ValidationError)
    assert error.node == "kms_key"
    assert error.field is None


def test_hierarchy():
    for cls in (ConfigurationError, ResourceNotFoundError, ExternalProvisioningError, ValidationError):
        assert issubclass(cls, CostReportCdkError)
