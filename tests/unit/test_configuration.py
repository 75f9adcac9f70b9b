"""Unit tests for configuration validation."""
import pytest

from cost_report_cdk.exceptions import DependencyError, ValidationError
from cost_report_cdk.graph import Configuration, load_configuration
from cost_report_cdk.project_settings import Compression, ReportFormat, StorageClass, TimeUnit


class TestConfigurationDefaults:
    """Defaults applied to optional fields."""

    def test_minimal_configuration(self, base_config):
        """Only bucket name, tags and account are required."""
        config = load_configuration(
            {"s3_bucket_name": "b", "tags": {}, "account_id": "123456789012"}
        )

        assert config.region == "us-east-1"
        assert config.report_name == "cost-and-usage-report"
        assert config.time_unit == TimeUnit.DAILY
        assert config.format == ReportFormat.PARQUET
        assert config.compression == Compression.PARQUET
        assert config.s3_bucket_prefix == "cur2"
        assert config.additional_schema_elements == ["RESOURCES"]
        assert config.enable_versioning is True
        assert config.enable_public_access_block is True
        assert config.enable_replication is False
        assert config.replication_storage_class == StorageClass.STANDARD
        assert config.notification_events == ["s3:ObjectCreated:*"]
        assert config.kms_key_deletion_window == 7

    def test_configuration_is_frozen(self, base_config):
        """Configurations cannot be mutated after validation."""
        config = load_configuration(base_config)

        with pytest.raises(Exception):
            config.enable_replication = True

    def test_load_configuration_accepts_model(self, base_config):
        """An existing Configuration is checked, not rebuilt."""
        config = Configuration(**base_config)

        assert load_configuration(config) is config

    def test_coh_destination_prefix(self, base_config):
        """COH objects land under an account scoped prefix."""
        config = load_configuration({**base_config, "coh_s3_prefix": "exports"})

        assert config.coh_destination_prefix == "exports/123456789012"


class TestConfigurationValidation:
    """Values outside their allowed set are rejected."""

    def test_format_outside_set(self, base_config):
        """format='csv' is not one of the report formats."""
        with pytest.raises(ValidationError) as exc_info:
            load_configuration({**base_config, "format": "csv"})

        assert exc_info.value.field == "format"
        assert not isinstance(exc_info.value, DependencyError)

    def test_text_or_csv_format_accepted(self, base_config):
        """The CSV report format uses its service spelling."""
        config = load_configuration({**base_config, "format": "textORcsv", "compression": "GZIP"})

        assert config.format == ReportFormat.TEXT_OR_CSV
        assert config.compression == Compression.GZIP

    @pytest.mark.parametrize(
        "field, value",
        [
            ("time_unit", "WEEKLY"),
            ("compression", "BZIP2"),
            ("report_versioning", "APPEND"),
            ("replication_storage_class", "COLD"),
            ("coh_refresh_frequency", "HOURLY"),
            ("account_id", "12345"),
            ("s3_bucket_name", "Upper_Case"),
            ("kms_key_deletion_window", 3),
            ("kms_key_deletion_window", 31),
        ],
    )
    def test_invalid_values(self, base_config, field, value):
        """Closed sets and formats are enforced per field."""
        with pytest.raises(ValidationError) as exc_info:
            load_configuration({**base_config, field: value})

        assert exc_info.value.field == field

    @pytest.mark.parametrize("field", ["s3_bucket_name", "tags", "account_id"])
    def test_missing_required_field(self, base_config, field):
        """Missing required fields are named in the error."""
        data = dict(base_config)
        del data[field]

        with pytest.raises(ValidationError) as exc_info:
            load_configuration(data)

        assert exc_info.value.field == field
        assert f"Missing required configuration field '{field}'" in str(exc_info.value)

    def test_unknown_field_rejected(self, base_config):
        """Typos in config.yaml do not pass silently."""
        with pytest.raises(ValidationError) as exc_info:
            load_configuration({**base_config, "enable_replicaton": True})

        assert exc_info.value.field == "enable_replicaton"

    @pytest.mark.parametrize("value", ["not json", "[1, 2]"])
    def test_coh_filter_must_be_json_object(self, base_config, value):
        """The export filter is a serialized JSON object."""
        with pytest.raises(ValidationError) as exc_info:
            load_configuration({**base_config, "coh_filter": value})

        assert exc_info.value.field == "coh_filter"

    def test_empty_notification_events_rejected(self, base_config):
        """A notification rule needs at least one event."""
        with pytest.raises(ValidationError):
            load_configuration({**base_config, "notification_events": []})


class TestFeatureDependencies:
    """Fields that become mandatory once a feature is on."""

    def test_replication_without_destination(self, base_config):
        """Replication needs a destination bucket."""
        with pytest.raises(DependencyError) as exc_info:
            load_configuration({**base_config, "enable_replication": True})

        assert exc_info.value.field == "replication_destination_bucket"

    def test_replication_without_destination_account(self, base_config):
        """Replication needs the destination account once the bucket is set."""
        with pytest.raises(DependencyError) as exc_info:
            load_configuration(
                {
                    **base_config,
                    "enable_replication": True,
                    "replication_destination_bucket": "arn:aws:s3:::dst",
                }
            )

        assert exc_info.value.field == "replication_destination_account_id"

    def test_replication_with_versioning_suspended(self, replication_config):
        """Replication rules need versioning enabled on the source bucket."""
        with pytest.raises(DependencyError) as exc_info:
            load_configuration({**replication_config, "enable_versioning": False})

        assert exc_info.value.field == "enable_versioning"

    def test_dependency_error_is_validation_error(self, base_config):
        """Callers catching ValidationError also see dependency failures."""
        with pytest.raises(ValidationError):
            load_configuration({**base_config, "enable_replication": True})

    def test_destination_ignored_without_replication(self, base_config):
        """Destination fields are accepted and ignored while replication is off."""
        config = load_configuration(
            {**base_config, "replication_destination_bucket": "arn:aws:s3:::dst"}
        )

        assert config.enable_replication is False


class TestDerivedFlags:
    """Properties that select optional nodes."""

    def test_generated_kms_key(self, base_config):
        config = load_configuration({**base_config, "enable_kms_encryption": True})

        assert config.creates_kms_key is True
        assert config.uses_external_kms_key is False

    def test_external_kms_key(self, base_config):
        config = load_configuration(
            {**base_config, "enable_kms_encryption": True, "kms_key_id": "arn:aws:kms:us-east-1:1:key/x"}
        )

        assert config.creates_kms_key is False
        assert config.uses_external_kms_key is True

    def test_kms_key_id_without_encryption(self, base_config):
        config = load_configuration({**base_config, "kms_key_id": "arn:aws:kms:us-east-1:1:key/x"})

        assert config.creates_kms_key is False
        assert config.uses_external_kms_key is False

    def test_notification_topic(self, base_config):
        generated = load_configuration({**base_config, "enable_bucket_notification": True})
        supplied = load_configuration(
            {
                **base_config,
                "enable_bucket_notification": True,
                "notification_topic_arn": "arn:aws:sns:us-east-1:123456789012:t",
            }
        )

        assert generated.creates_notification_topic is True
        assert supplied.creates_notification_topic is False
