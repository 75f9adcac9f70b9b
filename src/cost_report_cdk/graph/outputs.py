"""Named output values mirroring the identifiers of an evaluated graph."""

from typing import Any

from ..project_settings import (
    PARTITION,
    bucket_arn,
    report_definition_arn,
    resource_name,
)
from .configuration import Configuration
from .nodes import Ref


def kms_alias_name(config: Configuration) -> str:
    return f"alias/{resource_name(config.report_name, 's3-key')}"


def notification_topic_name(config: Configuration) -> str:
    return resource_name(config.report_name, "notifications")


def cur_configuration(config: Configuration) -> dict[str, Any]:
    return {
        "report_name": config.report_name,
        "time_unit": config.time_unit.value,
        "format": config.format.value,
        "compression": config.compression.value,
        "s3_bucket": config.s3_bucket_name,
        "s3_prefix": config.s3_bucket_prefix,
        "s3_region": config.region,
        "refresh_closed_reports": config.refresh_closed_reports,
        "report_versioning": config.report_versioning.value,
    }


def s3_configuration(config: Configuration) -> dict[str, Any]:
    return {
        "bucket_name": config.s3_bucket_name,
        "bucket_arn": bucket_arn(config.s3_bucket_name),
        "versioning_enabled": config.enable_versioning,
        "encryption_enabled": config.enable_kms_encryption,
        "replication_enabled": config.enable_replication,
        "public_access_blocked": config.enable_public_access_block,
        "notifications_enabled": config.enable_bucket_notification,
    }


def replication_configuration(config: Configuration) -> dict[str, Any]:
    return {
        "role_arn": Ref("replication_role", "arn"),
        "destination_bucket": config.replication_destination_bucket,
        "destination_account_id": config.replication_destination_account_id,
        "destination_region": config.replication_destination_region,
        "prefix": config.replication_prefix,
        "storage_class": config.replication_storage_class.value,
        "replica_kms_key_id": config.replication_replica_kms_key_id,
    }


def coh_configuration(config: Configuration) -> dict[str, Any]:
    return {
        "enabled": config.enable_cost_optimization_hub,
        "export_name": config.coh_export_name,
        "export_arn": Ref("coh_export", "arn"),
        "s3_prefix": config.coh_destination_prefix,
        "filter": config.coh_filter,
        "include_all_recommendations": config.coh_include_all_recommendations,
        "refresh_frequency": config.coh_refresh_frequency.value,
    }


def build_outputs(config: Configuration) -> dict[str, Any]:
    """Output values for the features enabled in ``config``.

    Generated identifiers are Refs; everything derivable from the
    configuration is resolved to a literal.
    """
    name = config.s3_bucket_name
    outputs: dict[str, Any] = {
        "s3_bucket_id": Ref("bucket", "id"),
        "s3_bucket_arn": bucket_arn(name),
        "s3_bucket_domain_name": f"{name}.s3.amazonaws.com",
        "s3_bucket_regional_domain_name": f"{name}.s3.{config.region}.amazonaws.com",
        "s3_bucket_region": config.region,
        "cur_report_name": config.report_name,
        "cur_report_arn": report_definition_arn(config.account_id, config.report_name),
    }

    if config.creates_kms_key:
        alias = kms_alias_name(config)
        outputs.update(
            kms_key_id=Ref("kms_key", "id"),
            kms_key_arn=Ref("kms_key", "arn"),
            kms_alias_name=alias,
            kms_alias_arn=f"arn:{PARTITION}:kms:{config.region}:{config.account_id}:{alias}",
        )

    if config.enable_replication:
        outputs["replication_role_arn"] = Ref("replication_role", "arn")

    if config.creates_notification_topic:
        outputs["sns_topic_arn"] = Ref("notification_topic", "arn")
        outputs["sns_topic_name"] = notification_topic_name(config)

    if config.enable_cost_optimization_hub:
        outputs["coh_export_arn"] = Ref("coh_export", "arn")

    outputs["cur_configuration"] = cur_configuration(config)
    outputs["s3_configuration"] = s3_configuration(config)
    if config.enable_replication:
        outputs["replication_configuration"] = replication_configuration(config)
    if config.enable_cost_optimization_hub:
        outputs["coh_configuration"] = coh_configuration(config)

    return outputs
