"""Cost and Usage Report Stack.

Materializes an evaluated resource graph as CloudFormation resources:
S3 bucket, optional KMS key, bucket policy, optional replication role,
optional SNS notifications, the CUR report definition and the optional
Cost Optimization Hub export.
"""
from collections.abc import Mapping
from typing import Any, Callable

from aws_cdk import CfnOutput, CfnResource, CfnTag, Stack, Token
from aws_cdk import aws_bcmdataexports as bcmdataexports
from aws_cdk import aws_cur as cur
from aws_cdk import aws_iam as iam
from aws_cdk import aws_kms as kms
from aws_cdk import aws_s3 as s3
from aws_cdk import aws_sns as sns
from constructs import Construct

from ..exceptions import ConfigurationError, ResourceNotFoundError
from ..graph import Configuration, Ref, ResourceGraph, ResourceNode, ResourceType, evaluate
from ..logger import LogContext, get_logger

logger = get_logger(__name__)

# Explicit logical IDs - deterministic names for idempotent deployments
LOGICAL_IDS = {
    "kms_key": "CURS3KMSKey",
    "kms_alias": "CURS3KMSKeyAlias",
    "bucket": "CURBucket",
    "bucket_policy": "CURBucketPolicy",
    "replication_role": "ReplicationRole",
    "replication_role_policy": "ReplicationRolePolicy",
    "notification_topic": "CURNotificationTopic",
    "notification_topic_policy": "CURNotificationTopicPolicy",
    "report_definition": "CURReportDefinition",
    "coh_export": "CostOptimizationHubExport",
}

# Sub-resources that CloudFormation models as properties of another resource
FOLDED_INTO = {
    ResourceType.KMS_KEY_POLICY: "kms_key",
    ResourceType.BUCKET_VERSIONING: "bucket",
    ResourceType.BUCKET_ENCRYPTION: "bucket",
    ResourceType.PUBLIC_ACCESS_BLOCK: "bucket",
    ResourceType.REPLICATION_CONFIGURATION: "bucket",
    ResourceType.BUCKET_NOTIFICATION: "bucket",
}

OUTPUTS = {
    "s3_bucket_id": ("S3BucketId", "The ID of the S3 bucket"),
    "s3_bucket_arn": ("S3BucketArn", "The ARN of the S3 bucket"),
    "s3_bucket_domain_name": ("S3BucketDomainName", "The bucket domain name"),
    "s3_bucket_regional_domain_name": (
        "S3BucketRegionalDomainName",
        "The bucket region-specific domain name",
    ),
    "s3_bucket_region": ("S3BucketRegion", "The AWS region this bucket resides in"),
    "cur_report_name": ("CURReportName", "The name of the CUR report"),
    "cur_report_arn": ("CURReportArn", "The ARN of the CUR report"),
    "kms_key_id": ("KMSKeyId", "The globally unique identifier for the KMS key"),
    "kms_key_arn": ("KMSKeyArn", "The Amazon Resource Name (ARN) of the KMS key"),
    "kms_alias_arn": ("KMSAliasArn", "The Amazon Resource Name (ARN) of the key alias"),
    "kms_alias_name": ("KMSAliasName", "The display name of the alias"),
    "replication_role_arn": ("ReplicationRoleArn", "The ARN of the replication IAM role"),
    "sns_topic_arn": ("SNSTopicArn", "The ARN of the bucket notification topic"),
    "sns_topic_name": ("SNSTopicName", "The name of the bucket notification topic"),
    "coh_export_arn": ("COHExportArn", "The ARN of the Cost Optimization Hub export"),
    "cur_configuration": ("CURConfiguration", "Summary of CUR configuration"),
    "s3_configuration": ("S3Configuration", "Summary of S3 bucket configuration"),
    "replication_configuration": (
        "ReplicationConfiguration",
        "Summary of cross-account replication configuration",
    ),
    "coh_configuration": ("COHConfiguration", "Summary of Cost Optimization Hub configuration"),
}


STACK_DESCRIPTION = "AWS Cost and Usage Report (CUR) infrastructure"


def cfn_tags(tags: Mapping[str, str]) -> list[CfnTag]:
    return [CfnTag(key=key, value=value) for key, value in tags.items()]


class CostReportStack(Stack):
    """CUR bucket, report definition and the optional features around them."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        configuration: Configuration | Mapping[str, Any],
        **kwargs,
    ) -> None:
        """Initialize Cost Report Stack.

        Args:
            scope: CDK app or parent stack
            construct_id: Unique identifier for this stack
            configuration: Configuration (or raw config.yaml block) to evaluate
            **kwargs: Additional stack properties

        Raises:
            ValidationError: If the configuration is invalid
            ConfigurationError: If the stack region cannot host the report
        """
        kwargs.setdefault("description", STACK_DESCRIPTION)
        super().__init__(scope, construct_id, **kwargs)

        self.graph: ResourceGraph = evaluate(configuration)
        self._check_region()

        self.resources: dict[str, CfnResource] = {}
        self._owners: dict[str, str] = {}

        handlers: dict[ResourceType, Callable[[ResourceNode], None]] = {
            ResourceType.KMS_KEY: self._kms_key,
            ResourceType.KMS_ALIAS: self._kms_alias,
            ResourceType.KMS_KEY_POLICY: self._kms_key_policy,
            ResourceType.S3_BUCKET: self._bucket,
            ResourceType.BUCKET_VERSIONING: self._bucket_versioning,
            ResourceType.BUCKET_ENCRYPTION: self._bucket_encryption,
            ResourceType.PUBLIC_ACCESS_BLOCK: self._public_access_block,
            ResourceType.BUCKET_POLICY: self._bucket_policy,
            ResourceType.IAM_ROLE: self._iam_role,
            ResourceType.IAM_ROLE_POLICY: self._iam_role_policy,
            ResourceType.REPLICATION_CONFIGURATION: self._replication_configuration,
            ResourceType.SNS_TOPIC: self._sns_topic,
            ResourceType.SNS_TOPIC_POLICY: self._sns_topic_policy,
            ResourceType.BUCKET_NOTIFICATION: self._bucket_notification,
            ResourceType.CUR_REPORT_DEFINITION: self._report_definition,
            ResourceType.DATA_EXPORT: self._data_export,
        }

        # Graph order guarantees owners exist before anything folds into them
        for node in self.graph:
            with LogContext(logger, stack=construct_id, node=node.name) as log:
                handlers[node.type](node)
                log.debug("resource_node_materialized", type=node.type.value)

        self._wire_dependencies()
        self._add_outputs()

    # Helpers

    def _check_region(self) -> None:
        # The bucket is created in the stack region, so the report and export
        # destinations must name that region too.
        bucket_region = self.graph.outputs["s3_bucket_region"]
        if not Token.is_unresolved(self.region) and self.region != bucket_region:
            raise ConfigurationError(
                f"Configured bucket region {bucket_region} does not match the stack region",
                field="region",
                stack_region=self.region,
                configured_region=bucket_region,
            )

        for node in self.graph:
            if node.region is None:
                continue
            if Token.is_unresolved(self.region):
                logger.warning(
                    "stack_region_unresolved",
                    node=node.name,
                    required_region=node.region,
                )
            elif self.region != node.region:
                raise ConfigurationError(
                    f"Resource '{node.name}' can only be created in {node.region}",
                    stack_region=self.region,
                    required_region=node.region,
                )

    def _register(self, node: ResourceNode, resource: CfnResource) -> None:
        self.resources[node.name] = resource
        self._owners[node.name] = node.name

    def _fold(self, node: ResourceNode) -> Any:
        owner = FOLDED_INTO[node.type]
        self._owners[node.name] = owner
        return self.resources[owner]

    def _owner(self, name: str) -> str:
        try:
            return self._owners[name]
        except KeyError:
            raise ResourceNotFoundError(
                f"Resource node '{name}' has not been materialized",
                node=name,
            ) from None

    def _attribute(self, ref: Ref) -> Any:
        resource = self.resources[self._owner(ref.node)]
        if ref.attribute == "arn":
            # Ref returns the ARN for topics and exports, which have no attr_arn
            return getattr(resource, "attr_arn", None) or resource.ref
        return resource.ref

    def _resolve(self, value: Any) -> Any:
        """Replace Refs with CloudFormation tokens at any depth."""
        if isinstance(value, Ref):
            return self._attribute(value)
        if isinstance(value, Mapping):
            return {key: self._resolve(item) for key, item in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._resolve(item) for item in value]
        return value

    def _wire_dependencies(self) -> None:
        for node in self.graph:
            owner = self._owner(node.name)
            for dependency in node.dependencies():
                target = self._owner(dependency)
                if target != owner:
                    self.resources[owner].add_dependency(self.resources[target])

    def _add_outputs(self) -> None:
        for key, value in self.graph.outputs.items():
            output_id, description = OUTPUTS[key]
            resolved = self._resolve(value)
            if isinstance(value, Mapping):
                resolved = self.to_json_string(resolved)
            elif not isinstance(resolved, str):
                resolved = str(resolved)
            CfnOutput(
                self,
                output_id,
                value=resolved,
                description=description,
                export_name=f"{self.stack_name}-{output_id}",
            )

    # KMS

    def _kms_key(self, node: ResourceNode) -> None:
        p = node.properties
        self.kms_key = kms.CfnKey(
            self,
            LOGICAL_IDS[node.name],
            description=p["description"],
            enable_key_rotation=p["enable_key_rotation"],
            pending_window_in_days=p["pending_window_in_days"],
            tags=cfn_tags(p["tags"]),
        )
        self._register(node, self.kms_key)

    def _kms_alias(self, node: ResourceNode) -> None:
        p = node.properties
        alias = kms.CfnAlias(
            self,
            LOGICAL_IDS[node.name],
            alias_name=p["alias_name"],
            target_key_id=self._resolve(p["target_key_id"]),
        )
        self._register(node, alias)

    def _kms_key_policy(self, node: ResourceNode) -> None:
        key = self._fold(node)
        key.key_policy = self._resolve(node.properties["policy"])

    # S3 bucket

    def _bucket(self, node: ResourceNode) -> None:
        p = node.properties
        self.bucket = s3.CfnBucket(
            self,
            LOGICAL_IDS[node.name],
            bucket_name=p["bucket_name"],
            tags=cfn_tags(p["tags"]),
        )
        self._register(node, self.bucket)

    def _bucket_versioning(self, node: ResourceNode) -> None:
        bucket = self._fold(node)
        bucket.versioning_configuration = s3.CfnBucket.VersioningConfigurationProperty(
            status=node.properties["status"],
        )

    def _bucket_encryption(self, node: ResourceNode) -> None:
        p = node.properties
        bucket = self._fold(node)
        bucket.bucket_encryption = s3.CfnBucket.BucketEncryptionProperty(
            server_side_encryption_configuration=[
                s3.CfnBucket.ServerSideEncryptionRuleProperty(
                    server_side_encryption_by_default=s3.CfnBucket.ServerSideEncryptionByDefaultProperty(
                        sse_algorithm=p["sse_algorithm"],
                        kms_master_key_id=self._resolve(p["kms_master_key_id"]),
                    ),
                    bucket_key_enabled=p["bucket_key_enabled"],
                )
            ]
        )

    def _public_access_block(self, node: ResourceNode) -> None:
        p = node.properties
        bucket = self._fold(node)
        bucket.public_access_block_configuration = (
            s3.CfnBucket.PublicAccessBlockConfigurationProperty(
                block_public_acls=p["block_public_acls"],
                block_public_policy=p["block_public_policy"],
                ignore_public_acls=p["ignore_public_acls"],
                restrict_public_buckets=p["restrict_public_buckets"],
            )
        )

    def _bucket_policy(self, node: ResourceNode) -> None:
        p = node.properties
        self.bucket_policy = s3.CfnBucketPolicy(
            self,
            LOGICAL_IDS[node.name],
            bucket=self._resolve(p["bucket"]),
            policy_document=self._resolve(p["policy_document"]),
        )
        self._register(node, self.bucket_policy)

    # Replication

    def _iam_role(self, node: ResourceNode) -> None:
        p = node.properties
        self.replication_role = iam.CfnRole(
            self,
            LOGICAL_IDS[node.name],
            role_name=p["role_name"],
            assume_role_policy_document=p["assume_role_policy_document"],
            tags=cfn_tags(p["tags"]) or None,
        )
        self._register(node, self.replication_role)

    def _iam_role_policy(self, node: ResourceNode) -> None:
        p = node.properties
        policy = iam.CfnPolicy(
            self,
            LOGICAL_IDS[node.name],
            policy_name=p["policy_name"],
            policy_document=self._resolve(p["policy_document"]),
            roles=[self._resolve(p["role"])],
        )
        self._register(node, policy)

    def _replication_configuration(self, node: ResourceNode) -> None:
        p = node.properties
        bucket = self._fold(node)
        rules = []
        for rule in p["rules"]:
            destination = rule["destination"]
            encryption = None
            if "replica_kms_key_id" in destination:
                encryption = s3.CfnBucket.EncryptionConfigurationProperty(
                    replica_kms_key_id=destination["replica_kms_key_id"],
                )
            source_selection = None
            if "sse_kms_encrypted_objects" in rule:
                source_selection = s3.CfnBucket.SourceSelectionCriteriaProperty(
                    sse_kms_encrypted_objects=s3.CfnBucket.SseKmsEncryptedObjectsProperty(
                        status=rule["sse_kms_encrypted_objects"],
                    )
                )
            rules.append(
                s3.CfnBucket.ReplicationRuleProperty(
                    id=rule["id"],
                    status=rule["status"],
                    priority=rule["priority"],
                    filter=s3.CfnBucket.ReplicationRuleFilterProperty(
                        prefix=rule["filter_prefix"],
                    ),
                    delete_marker_replication=s3.CfnBucket.DeleteMarkerReplicationProperty(
                        status=rule["delete_marker_replication"],
                    ),
                    source_selection_criteria=source_selection,
                    destination=s3.CfnBucket.ReplicationDestinationProperty(
                        bucket=destination["bucket"],
                        account=destination["account"],
                        storage_class=destination["storage_class"],
                        encryption_configuration=encryption,
                    ),
                )
            )
        bucket.replication_configuration = s3.CfnBucket.ReplicationConfigurationProperty(
            role=self._resolve(p["role"]),
            rules=rules,
        )

    # Notifications

    def _sns_topic(self, node: ResourceNode) -> None:
        p = node.properties
        self.notification_topic = sns.CfnTopic(
            self,
            LOGICAL_IDS[node.name],
            topic_name=p["topic_name"],
            tags=cfn_tags(p["tags"]),
        )
        self._register(node, self.notification_topic)

    def _sns_topic_policy(self, node: ResourceNode) -> None:
        p = node.properties
        policy = sns.CfnTopicPolicy(
            self,
            LOGICAL_IDS[node.name],
            policy_document=self._resolve(p["policy_document"]),
            topics=self._resolve(p["topics"]),
        )
        self._register(node, policy)

    def _bucket_notification(self, node: ResourceNode) -> None:
        bucket = self._fold(node)
        topic_configurations = [
            s3.CfnBucket.TopicConfigurationProperty(
                event=event,
                topic=self._resolve(rule["topic"]),
                filter=s3.CfnBucket.NotificationFilterProperty(
                    s3_key=s3.CfnBucket.S3KeyFilterProperty(
                        rules=[
                            s3.CfnBucket.FilterRuleProperty(
                                name="prefix",
                                value=rule["filter_prefix"],
                            )
                        ]
                    )
                ),
            )
            for rule in node.properties["topic_configurations"]
            for event in rule["events"]
        ]
        bucket.notification_configuration = s3.CfnBucket.NotificationConfigurationProperty(
            topic_configurations=topic_configurations,
        )

    # Billing

    def _report_definition(self, node: ResourceNode) -> None:
        p = node.properties
        self.report_definition = cur.CfnReportDefinition(
            self,
            LOGICAL_IDS[node.name],
            report_name=p["report_name"],
            time_unit=p["time_unit"],
            format=p["format"],
            compression=p["compression"],
            additional_schema_elements=p["additional_schema_elements"] or None,
            s3_bucket=self._resolve(p["s3_bucket"]),
            s3_prefix=p["s3_prefix"],
            s3_region=p["s3_region"],
            additional_artifacts=p["additional_artifacts"] or None,
            refresh_closed_reports=p["refresh_closed_reports"],
            report_versioning=p["report_versioning"],
        )
        self._register(node, self.report_definition)

    def _data_export(self, node: ResourceNode) -> None:
        p = node.properties
        output = p["s3_output"]
        self.coh_export = bcmdataexports.CfnExport(
            self,
            LOGICAL_IDS[node.name],
            export=bcmdataexports.CfnExport.ExportProperty(
                name=p["name"],
                description=p["description"],
                data_query=bcmdataexports.CfnExport.DataQueryProperty(
                    query_statement=p["query_statement"],
                    table_configurations=p["table_configurations"],
                ),
                destination_configurations=bcmdataexports.CfnExport.DestinationConfigurationsProperty(
                    s3_destination=bcmdataexports.CfnExport.S3DestinationProperty(
                        s3_bucket=self._resolve(p["s3_bucket"]),
                        s3_prefix=p["s3_prefix"],
                        s3_region=p["s3_region"],
                        s3_output_configurations=bcmdataexports.CfnExport.S3OutputConfigurationsProperty(
                            overwrite=output["overwrite"],
                            format=output["format"],
                            compression=output["compression"],
                            output_type=output["output_type"],
                        ),
                    )
                ),
                refresh_cadence=bcmdataexports.CfnExport.RefreshCadenceProperty(
                    frequency=p["refresh_frequency"],
                ),
            ),
            tags=[
                bcmdataexports.CfnExport.ResourceTagProperty(key=key, value=value)
                for key, value in p["tags"].items()
            ],
        )
        self._register(node, self.coh_export)
