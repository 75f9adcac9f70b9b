"""Resource graph evaluator.

Turns a Configuration into the ordered set of resources to create. Every
node in NODE_TABLE carries a presence predicate and a builder; the builders
wire nodes together through Refs and explicit dependencies, and
order_nodes() linearizes the result.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from ..exceptions import DependencyError
from ..logger import get_logger, log_function_call
from ..project_settings import (
    COH_EXPORT_TYPE_TAG,
    COH_QUERY_STATEMENT,
    COH_TABLE_NAME,
    CUR_SERVICE_REGION,
    resource_name,
)
from ..tracing import get_tracer
from . import policies
from .configuration import Configuration, load_configuration
from .nodes import Ref, ResourceGraph, ResourceNode, ResourceType, iter_refs
from .ordering import order_nodes
from .outputs import build_outputs, kms_alias_name, notification_topic_name

logger = get_logger(__name__)
tracer = get_tracer(__name__)

BUCKET_ID = Ref("bucket", "id")


def _tags(config: Configuration, name: str | None = None, **extra: str) -> dict[str, str]:
    tags = dict(config.tags)
    if name:
        tags["Name"] = name
    tags.update(extra)
    return tags


# KMS


def _kms_key(config: Configuration) -> ResourceNode:
    return ResourceNode(
        name="kms_key",
        type=ResourceType.KMS_KEY,
        properties={
            "description": "KMS key for Cost and Usage Report S3 bucket encryption",
            "enable_key_rotation": True,
            "pending_window_in_days": config.kms_key_deletion_window,
            "tags": _tags(config, resource_name(config.report_name, "s3-key")),
        },
    )


def _kms_alias(config: Configuration) -> ResourceNode:
    return ResourceNode(
        name="kms_alias",
        type=ResourceType.KMS_ALIAS,
        properties={
            "alias_name": kms_alias_name(config),
            "target_key_id": Ref("kms_key", "id"),
        },
        depends_on=("kms_key",),
    )


def _kms_key_policy(config: Configuration) -> ResourceNode:
    return ResourceNode(
        name="kms_key_policy",
        type=ResourceType.KMS_KEY_POLICY,
        properties={
            "key_id": Ref("kms_key", "id"),
            "policy": policies.kms_key_policy(config).to_dict(),
        },
        depends_on=("kms_key",),
    )


# Bucket and its sub-resources


def _bucket(config: Configuration) -> ResourceNode:
    return ResourceNode(
        name="bucket",
        type=ResourceType.S3_BUCKET,
        properties={
            "bucket_name": config.s3_bucket_name,
            "tags": _tags(config, config.s3_bucket_name),
        },
    )


def _bucket_versioning(config: Configuration) -> ResourceNode:
    return ResourceNode(
        name="bucket_versioning",
        type=ResourceType.BUCKET_VERSIONING,
        properties={
            "bucket": BUCKET_ID,
            "status": "Enabled" if config.enable_versioning else "Suspended",
        },
        depends_on=("bucket",),
    )


def _bucket_encryption(config: Configuration) -> ResourceNode:
    return ResourceNode(
        name="bucket_encryption",
        type=ResourceType.BUCKET_ENCRYPTION,
        properties={
            "bucket": BUCKET_ID,
            "sse_algorithm": "aws:kms",
            "kms_master_key_id": policies.source_kms_key(config),
            "bucket_key_enabled": True,
        },
        depends_on=("bucket",),
    )


def _public_access_block(config: Configuration) -> ResourceNode:
    return ResourceNode(
        name="public_access_block",
        type=ResourceType.PUBLIC_ACCESS_BLOCK,
        properties={
            "bucket": BUCKET_ID,
            "block_public_acls": True,
            "block_public_policy": True,
            "ignore_public_acls": True,
            "restrict_public_buckets": True,
        },
        depends_on=("bucket",),
    )


def _bucket_policy(config: Configuration) -> ResourceNode:
    depends_on = ["bucket"]
    # A public access block applied after the policy would be rejected
    if config.enable_public_access_block:
        depends_on.append("public_access_block")
    return ResourceNode(
        name="bucket_policy",
        type=ResourceType.BUCKET_POLICY,
        properties={
            "bucket": BUCKET_ID,
            "policy_document": policies.bucket_policy(config).to_dict(),
        },
        depends_on=tuple(depends_on),
    )


# Replication


def _replication_role(config: Configuration) -> ResourceNode:
    return ResourceNode(
        name="replication_role",
        type=ResourceType.IAM_ROLE,
        properties={
            "role_name": resource_name(config.report_name, "replication-role"),
            "assume_role_policy_document": policies.replication_assume_role_policy().to_dict(),
            "tags": _tags(config),
        },
    )


def _replication_role_policy(config: Configuration) -> ResourceNode:
    return ResourceNode(
        name="replication_role_policy",
        type=ResourceType.IAM_ROLE_POLICY,
        properties={
            "policy_name": resource_name(config.report_name, "replication-policy"),
            "role": Ref("replication_role", "id"),
            "policy_document": policies.replication_role_policy(config).to_dict(),
        },
        depends_on=("replication_role",),
    )


def _replication_configuration(config: Configuration) -> ResourceNode:
    destination: dict[str, Any] = {
        "bucket": config.replication_destination_bucket,
        "account": config.replication_destination_account_id,
        "storage_class": config.replication_storage_class.value,
    }
    if config.encrypts_replicas:
        destination["replica_kms_key_id"] = config.replication_replica_kms_key_id

    rule = {
        "id": resource_name(config.report_name, "replication-rule"),
        "status": "Enabled",
        "priority": 1,
        "filter_prefix": config.replication_prefix,
        "delete_marker_replication": "Enabled",
        "destination": destination,
    }
    # SSE-KMS objects are skipped unless the rule opts in, and opting in
    # needs a replica key on the destination side.
    if config.enable_kms_encryption and config.encrypts_replicas:
        rule["sse_kms_encrypted_objects"] = "Enabled"
    return ResourceNode(
        name="replication_configuration",
        type=ResourceType.REPLICATION_CONFIGURATION,
        properties={
            "bucket": BUCKET_ID,
            "role": Ref("replication_role", "arn"),
            "rules": [rule],
        },
        depends_on=("bucket", "bucket_versioning", "replication_role"),
    )


# Notifications


def _notification_topic(config: Configuration) -> ResourceNode:
    name = notification_topic_name(config)
    return ResourceNode(
        name="notification_topic",
        type=ResourceType.SNS_TOPIC,
        properties={"topic_name": name, "tags": _tags(config, name)},
    )


def _notification_topic_policy(config: Configuration) -> ResourceNode:
    return ResourceNode(
        name="notification_topic_policy",
        type=ResourceType.SNS_TOPIC_POLICY,
        properties={
            "topics": [Ref("notification_topic", "arn")],
            "policy_document": policies.topic_policy(config).to_dict(),
        },
        depends_on=("notification_topic",),
    )


def _bucket_notification(config: Configuration) -> ResourceNode:
    if config.creates_notification_topic:
        topic: Any = Ref("notification_topic", "arn")
        depends_on: tuple[str, ...] = ("bucket", "notification_topic_policy")
    else:
        topic = config.notification_topic_arn
        depends_on = ("bucket",)

    rules = [
        {
            "id": "cur-report-delivery",
            "topic": topic,
            "events": list(config.notification_events),
            "filter_prefix": config.s3_bucket_prefix,
        }
    ]
    if config.enable_cost_optimization_hub:
        rules.append(
            {
                "id": "coh-export-delivery",
                "topic": topic,
                "events": list(config.notification_events),
                "filter_prefix": config.coh_destination_prefix,
            }
        )
    return ResourceNode(
        name="bucket_notification",
        type=ResourceType.BUCKET_NOTIFICATION,
        properties={"bucket": BUCKET_ID, "topic_configurations": rules},
        depends_on=depends_on,
    )


# Billing


def _report_definition(config: Configuration) -> ResourceNode:
    return ResourceNode(
        name="report_definition",
        type=ResourceType.CUR_REPORT_DEFINITION,
        properties={
            "report_name": config.report_name,
            "time_unit": config.time_unit.value,
            "format": config.format.value,
            "compression": config.compression.value,
            "additional_schema_elements": list(config.additional_schema_elements),
            "s3_bucket": BUCKET_ID,
            "s3_prefix": config.s3_bucket_prefix,
            "s3_region": config.region,
            "additional_artifacts": list(config.additional_artifacts),
            "refresh_closed_reports": config.refresh_closed_reports,
            "report_versioning": config.report_versioning.value,
        },
        # The billing service checks the bucket policy grants on creation
        depends_on=("bucket_policy",),
        region=CUR_SERVICE_REGION,
    )


def _coh_export(config: Configuration) -> ResourceNode:
    include_all = "TRUE" if config.coh_include_all_recommendations else "FALSE"
    return ResourceNode(
        name="coh_export",
        type=ResourceType.DATA_EXPORT,
        properties={
            "name": config.coh_export_name,
            "description": "Cost Optimization Hub Recommendations export for aggregation in CID",
            "query_statement": COH_QUERY_STATEMENT,
            "table_configurations": {
                COH_TABLE_NAME: {
                    "FILTER": config.coh_filter,
                    "INCLUDE_ALL_RECOMMENDATIONS": include_all,
                }
            },
            "s3_bucket": BUCKET_ID,
            "s3_prefix": config.coh_destination_prefix,
            "s3_region": config.region,
            "s3_output": {
                "overwrite": "OVERWRITE_REPORT",
                "format": "PARQUET",
                "compression": "PARQUET",
                "output_type": "CUSTOM",
            },
            "refresh_frequency": config.coh_refresh_frequency.value,
            "tags": _tags(config, config.coh_export_name, Type=COH_EXPORT_TYPE_TAG),
        },
        depends_on=("bucket_policy",),
        region=CUR_SERVICE_REGION,
    )


@dataclass(frozen=True)
class NodeSpec:
    """A node that may be part of the graph."""

    name: str
    present: Callable[[Configuration], bool]
    build: Callable[[Configuration], ResourceNode]


def _always(config: Configuration) -> bool:
    return True


# Declaration order breaks ties between independent nodes.
NODE_TABLE: tuple[NodeSpec, ...] = (
    NodeSpec("kms_key", lambda c: c.creates_kms_key, _kms_key),
    NodeSpec("kms_alias", lambda c: c.creates_kms_key, _kms_alias),
    NodeSpec("kms_key_policy", lambda c: c.creates_kms_key, _kms_key_policy),
    NodeSpec("bucket", _always, _bucket),
    NodeSpec("bucket_versioning", _always, _bucket_versioning),
    NodeSpec("bucket_encryption", lambda c: c.enable_kms_encryption, _bucket_encryption),
    NodeSpec("public_access_block", lambda c: c.enable_public_access_block, _public_access_block),
    NodeSpec("replication_role", lambda c: c.enable_replication, _replication_role),
    NodeSpec("replication_role_policy", lambda c: c.enable_replication, _replication_role_policy),
    NodeSpec("bucket_policy", _always, _bucket_policy),
    NodeSpec("replication_configuration", lambda c: c.enable_replication, _replication_configuration),
    NodeSpec("notification_topic", lambda c: c.creates_notification_topic, _notification_topic),
    NodeSpec(
        "notification_topic_policy",
        lambda c: c.creates_notification_topic,
        _notification_topic_policy,
    ),
    NodeSpec("bucket_notification", lambda c: c.enable_bucket_notification, _bucket_notification),
    NodeSpec("report_definition", _always, _report_definition),
    NodeSpec("coh_export", lambda c: c.enable_cost_optimization_hub, _coh_export),
)


def _check_output_refs(nodes: tuple[ResourceNode, ...], outputs: Mapping[str, Any]) -> None:
    present = {node.name for node in nodes}
    for ref in iter_refs(outputs):
        if ref.node not in present:
            raise DependencyError(
                f"Output references '{ref}', which is not present under this configuration",
                node=ref.node,
            )


@log_function_call(logger)
def evaluate(config: Configuration | Mapping[str, Any]) -> ResourceGraph:
    """Evaluate the resource graph for a configuration.

    Args:
        config: Configuration or raw mapping to validate first

    Returns:
        ResourceGraph with nodes in creation order and output values

    Raises:
        ValidationError: If the configuration is invalid (no node is built)
        DependencyError: If a present node needs an absent field or node

    Example:
        >>> graph = evaluate({"s3_bucket_name": "b", "tags": {}, "account_id": "123456789012"})
        >>> graph.names()[0]
        'bucket'
    """
    with tracer.start_as_current_span("evaluate_resource_graph") as span:
        config = load_configuration(config)
        span.set_attribute("cur.bucket", config.s3_bucket_name)
        span.set_attribute("cur.report_name", config.report_name)

        nodes: list[ResourceNode] = []
        for spec in NODE_TABLE:
            if spec.present(config):
                nodes.append(spec.build(config))
            else:
                logger.debug("resource_node_skipped", node=spec.name)

        ordered = order_nodes(nodes)
        outputs = build_outputs(config)
        _check_output_refs(ordered, outputs)

        graph = ResourceGraph(nodes=ordered, outputs=outputs)
        span.set_attribute("cur.node_count", len(graph))
        logger.info(
            "graph_evaluated",
            bucket=config.s3_bucket_name,
            node_count=len(graph),
            nodes=graph.names(),
        )
        return graph
