"""Configuration record consumed by the resource graph evaluator.

The record is flat: feature flags, closed-set enumerations, free strings
and a tag map. Account and region are explicit fields rather than ambient
provider lookups so that evaluation stays a pure function.
"""

import json
from collections.abc import Mapping
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import DependencyError, ValidationError
from ..logger import get_logger
from ..project_settings import (
    Compression,
    RefreshFrequency,
    ReportFormat,
    ReportVersioning,
    StorageClass,
    TimeUnit,
)

logger = get_logger(__name__)

BUCKET_NAME_PATTERN = r"^[a-z0-9]([a-z0-9.-]*[a-z0-9])?$"
REPORT_NAME_PATTERN = r"^[A-Za-z0-9_\-.]+$"
ACCOUNT_ID_PATTERN = r"^[0-9]{12}$"

# Fields that must be non-empty once replication is switched on, in check order.
REPLICATION_REQUIRED_FIELDS = (
    "replication_destination_bucket",
    "replication_destination_account_id",
)

_REPLICATION_OPTIONAL_FIELDS = (
    "replication_destination_region",
    "replication_prefix",
    "replication_replica_kms_key_id",
)


class Configuration(BaseModel):
    """Validated input of one evaluation run."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Required
    s3_bucket_name: Annotated[
        str, Field(min_length=1, max_length=63, pattern=BUCKET_NAME_PATTERN)
    ]
    tags: dict[str, str]
    account_id: Annotated[str, Field(pattern=ACCOUNT_ID_PATTERN)]
    region: Annotated[str, Field(min_length=1)] = "us-east-1"

    # Report definition
    report_name: Annotated[str, Field(pattern=REPORT_NAME_PATTERN)] = "cost-and-usage-report"
    time_unit: TimeUnit = TimeUnit.DAILY
    format: ReportFormat = ReportFormat.PARQUET
    compression: Compression = Compression.PARQUET
    s3_bucket_prefix: str = "cur2"
    report_versioning: ReportVersioning = ReportVersioning.OVERWRITE_REPORT
    refresh_closed_reports: bool = True
    additional_schema_elements: list[str] = Field(default_factory=lambda: ["RESOURCES"])
    additional_artifacts: list[str] = Field(default_factory=list)

    # Encryption
    enable_kms_encryption: bool = False
    kms_key_id: str = ""
    kms_key_deletion_window: Annotated[int, Field(ge=7, le=30)] = 7

    # Bucket
    enable_versioning: bool = True
    enable_public_access_block: bool = True

    # Replication
    enable_replication: bool = False
    replication_destination_bucket: str = ""
    replication_destination_account_id: Annotated[str, Field(pattern=r"^([0-9]{12})?$")] = ""
    replication_destination_region: str = ""
    replication_prefix: str = ""
    replication_storage_class: StorageClass = StorageClass.STANDARD
    replication_replica_kms_key_id: str = ""

    # Cost Optimization Hub
    enable_cost_optimization_hub: bool = False
    coh_export_name: Annotated[str, Field(min_length=1)] = "cost-optimization-hub-export"
    coh_s3_prefix: str = "coh"
    coh_filter: str = "{}"
    coh_include_all_recommendations: bool = False
    coh_refresh_frequency: RefreshFrequency = RefreshFrequency.SYNCHRONOUS

    # Notifications
    enable_bucket_notification: bool = False
    notification_topic_arn: str = ""
    notification_events: Annotated[list[str], Field(min_length=1)] = Field(
        default_factory=lambda: ["s3:ObjectCreated:*"]
    )

    @field_validator("coh_filter")
    @classmethod
    def validate_coh_filter(cls, v: str) -> str:
        """The export API expects the filter as a serialized JSON object."""
        try:
            parsed = json.loads(v)
        except json.JSONDecodeError as e:
            raise ValueError(f"coh_filter is not valid JSON: {e.msg}") from e
        if not isinstance(parsed, dict):
            raise ValueError("coh_filter must be a JSON object")
        return v

    @property
    def creates_kms_key(self) -> bool:
        """A key is generated only when encryption is on and none is supplied."""
        return self.enable_kms_encryption and self.kms_key_id == ""

    @property
    def uses_external_kms_key(self) -> bool:
        """Encryption is on and references the supplied key id."""
        return self.enable_kms_encryption and self.kms_key_id != ""

    @property
    def creates_notification_topic(self) -> bool:
        """A topic is generated only when notifications are on and none is supplied."""
        return self.enable_bucket_notification and self.notification_topic_arn == ""

    @property
    def encrypts_replicas(self) -> bool:
        """Replica encryption depends only on the replica key id."""
        return self.replication_replica_kms_key_id != ""

    @property
    def coh_destination_prefix(self) -> str:
        """Account scoped prefix shared by the COH export and its notification."""
        return f"{self.coh_s3_prefix}/{self.account_id}"


def _field_name(error: Mapping[str, Any]) -> str:
    loc = error.get("loc") or ()
    return ".".join(str(part) for part in loc) or "<root>"


def _to_validation_error(exc: PydanticValidationError) -> ValidationError:
    errors = exc.errors()
    first = errors[0]
    field = _field_name(first)
    if first.get("type") == "missing":
        message = f"Missing required configuration field '{field}'"
    else:
        message = f"Invalid value for configuration field '{field}': {first.get('msg')}"
    return ValidationError(
        message,
        field=field,
        fields=[_field_name(err) for err in errors],
    )


def check_required_fields(config: Configuration) -> None:
    """Check fields that become mandatory once a feature is switched on.

    Args:
        config: Configuration to check

    Raises:
        DependencyError: If replication is enabled without a destination or
            with versioning suspended
    """
    if not config.enable_replication:
        return
    for field in REPLICATION_REQUIRED_FIELDS:
        if getattr(config, field) == "":
            raise DependencyError(
                f"'{field}' is required when enable_replication is true",
                field=field,
            )
    # S3 rejects replication rules on a bucket whose versioning is suspended
    if not config.enable_versioning:
        raise DependencyError(
            "'enable_versioning' must be true when enable_replication is true",
            field="enable_versioning",
        )


def warn_on_ignored_fields(config: Configuration) -> None:
    """Log fields that are set but have no effect under the current flags."""
    if not config.enable_replication:
        ignored = [
            f
            for f in REPLICATION_REQUIRED_FIELDS + _REPLICATION_OPTIONAL_FIELDS
            if getattr(config, f)
        ]
        if ignored:
            logger.warning("configuration_fields_ignored", reason="replication_disabled", fields=ignored)
    if config.kms_key_id and not config.enable_kms_encryption:
        logger.warning("configuration_fields_ignored", reason="kms_encryption_disabled", fields=["kms_key_id"])
    if config.notification_topic_arn and not config.enable_bucket_notification:
        logger.warning(
            "configuration_fields_ignored",
            reason="bucket_notification_disabled",
            fields=["notification_topic_arn"],
        )


def load_configuration(data: Mapping[str, Any] | Configuration) -> Configuration:
    """Build and check a Configuration.

    Args:
        data: Raw mapping (e.g. a parsed config.yaml block) or a Configuration

    Returns:
        Validated configuration

    Raises:
        ValidationError: If a field is missing or outside its allowed set
        DependencyError: If an enabled feature lacks a required field
    """
    if isinstance(data, Configuration):
        config = data
    else:
        try:
            config = Configuration.model_validate(dict(data))
        except PydanticValidationError as e:
            raise _to_validation_error(e) from e

    check_required_fields(config)
    warn_on_ignored_fields(config)
    return config
