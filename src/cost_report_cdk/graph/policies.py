"""IAM policy documents attached to the bucket, key, topic and replication role.

Each builder returns a PolicyDocument whose statement set depends on the
configuration flags. Generated identifiers appear as Refs so that the
document wires the owning node to the node it references.
"""

from dataclasses import dataclass, field
from typing import Any

from ..project_settings import (
    CUR_SERVICE_PRINCIPAL,
    DATA_EXPORTS_SERVICE_PRINCIPAL,
    PARTITION,
    POLICY_VERSION,
    S3_SERVICE_PRINCIPAL,
    bucket_arn,
    report_definition_arn,
)
from .configuration import Configuration
from .nodes import Ref

KMS_READ_ACTIONS = ("kms:Decrypt", "kms:GenerateDataKey")
KMS_WRITE_ACTIONS = ("kms:Encrypt", "kms:GenerateDataKey")
BUCKET_READ_ACL_ACTIONS = ("s3:GetBucketAcl", "s3:GetBucketPolicy")
REPLICATION_SOURCE_ACTIONS = (
    "s3:GetObjectVersionForReplication",
    "s3:GetObjectVersionAcl",
    "s3:GetObjectVersionTagging",
)
REPLICATION_DESTINATION_ACTIONS = (
    "s3:ReplicateObject",
    "s3:ReplicateDelete",
    "s3:ReplicateTags",
)


@dataclass(frozen=True)
class PolicyStatement:
    """A single IAM statement."""

    actions: tuple[str, ...]
    resources: tuple[Any, ...]
    sid: str | None = None
    effect: str = "Allow"
    principal: dict[str, Any] | None = None
    conditions: dict[str, dict[str, Any]] | None = None

    def to_dict(self) -> dict[str, Any]:
        statement: dict[str, Any] = {}
        if self.sid:
            statement["Sid"] = self.sid
        statement["Effect"] = self.effect
        if self.principal:
            statement["Principal"] = self.principal
        statement["Action"] = _collapse(self.actions)
        # Trust policies name a principal and no resource
        if self.resources:
            statement["Resource"] = _collapse(self.resources)
        if self.conditions:
            statement["Condition"] = self.conditions
        return statement


@dataclass(frozen=True)
class PolicyDocument:
    """Ordered collection of statements."""

    statements: tuple[PolicyStatement, ...] = field(default_factory=tuple)

    @property
    def sids(self) -> list[str]:
        return [s.sid for s in self.statements if s.sid]

    def to_dict(self) -> dict[str, Any]:
        return {
            "Version": POLICY_VERSION,
            "Statement": [statement.to_dict() for statement in self.statements],
        }


def _collapse(values: tuple[Any, ...]) -> Any:
    return values[0] if len(values) == 1 else list(values)


def account_root(account_id: str) -> str:
    return f"arn:{PARTITION}:iam::{account_id}:root"


def source_kms_key(config: Configuration) -> Any:
    """Key used for server side encryption of the source bucket.

    Either the supplied key id or a reference to the generated key, never both.
    """
    if config.uses_external_kms_key:
        return config.kms_key_id
    return Ref("kms_key", "arn")


def kms_key_policy(config: Configuration) -> PolicyDocument:
    """Key policy for the generated CUR bucket key."""
    statements = [
        PolicyStatement(
            sid="EnableRootAccess",
            principal={"AWS": account_root(config.account_id)},
            actions=("kms:*",),
            resources=("*",),
        ),
        PolicyStatement(
            sid="AllowCURService",
            principal={"Service": CUR_SERVICE_PRINCIPAL},
            actions=KMS_READ_ACTIONS,
            resources=("*",),
        ),
        PolicyStatement(
            sid="AllowS3Service",
            principal={"Service": S3_SERVICE_PRINCIPAL},
            actions=KMS_READ_ACTIONS,
            resources=("*",),
        ),
    ]
    if config.enable_replication:
        statements.append(
            PolicyStatement(
                sid="AllowReplicationDestinationAccess",
                principal={"AWS": account_root(config.replication_destination_account_id)},
                actions=KMS_READ_ACTIONS,
                resources=("*",),
            )
        )
    if config.enable_cost_optimization_hub:
        statements.append(
            PolicyStatement(
                sid="AllowDataExportsService",
                principal={"Service": DATA_EXPORTS_SERVICE_PRINCIPAL},
                actions=KMS_READ_ACTIONS,
                resources=("*",),
            )
        )
    return PolicyDocument(tuple(statements))


def bucket_policy(config: Configuration) -> PolicyDocument:
    """Bucket policy: CUR grants, plus COH and replication grants when enabled."""
    arn = bucket_arn(config.s3_bucket_name)
    objects = f"{arn}/*"

    cur_condition = {
        "StringEquals": {
            "AWS:SourceArn": report_definition_arn(config.account_id),
            "AWS:SourceAccount": config.account_id,
        }
    }
    statements = [
        PolicyStatement(
            sid="AllowCURServiceGetBucketAcl",
            principal={"Service": CUR_SERVICE_PRINCIPAL},
            actions=BUCKET_READ_ACL_ACTIONS,
            resources=(arn,),
            conditions=cur_condition,
        ),
        PolicyStatement(
            sid="AllowCURServicePutObject",
            principal={"Service": CUR_SERVICE_PRINCIPAL},
            actions=("s3:PutObject",),
            resources=(objects,),
            conditions=cur_condition,
        ),
    ]

    if config.enable_cost_optimization_hub:
        coh_condition = {"StringEquals": {"AWS:SourceAccount": config.account_id}}
        statements += [
            PolicyStatement(
                sid="AllowCOHServiceGetBucketAcl",
                principal={"Service": DATA_EXPORTS_SERVICE_PRINCIPAL},
                actions=BUCKET_READ_ACL_ACTIONS,
                resources=(arn,),
                conditions=coh_condition,
            ),
            PolicyStatement(
                sid="AllowCOHServicePutObject",
                principal={"Service": DATA_EXPORTS_SERVICE_PRINCIPAL},
                actions=("s3:PutObject",),
                resources=(objects,),
                conditions=coh_condition,
            ),
        ]

    if config.enable_replication:
        role = {"AWS": Ref("replication_role", "arn")}
        statements += [
            PolicyStatement(
                sid="AllowReplicationServiceAccess",
                principal=role,
                actions=REPLICATION_SOURCE_ACTIONS,
                resources=(objects,),
            ),
            PolicyStatement(
                sid="AllowReplicationServiceList",
                principal=role,
                actions=("s3:ListBucket",),
                resources=(arn,),
            ),
        ]

    return PolicyDocument(tuple(statements))


def replication_assume_role_policy() -> PolicyDocument:
    return PolicyDocument(
        (
            PolicyStatement(
                principal={"Service": S3_SERVICE_PRINCIPAL},
                actions=("sts:AssumeRole",),
                resources=(),
            ),
        )
    )


def replication_role_policy(config: Configuration) -> PolicyDocument:
    """Permissions of the replication role."""
    arn = bucket_arn(config.s3_bucket_name)
    statements = [
        PolicyStatement(
            actions=REPLICATION_SOURCE_ACTIONS + ("s3:ListBucket",),
            resources=(arn, f"{arn}/*"),
        ),
        PolicyStatement(
            actions=REPLICATION_DESTINATION_ACTIONS,
            resources=(f"{config.replication_destination_bucket}/*",),
        ),
    ]
    if config.enable_kms_encryption:
        statements.append(
            PolicyStatement(actions=KMS_READ_ACTIONS, resources=(source_kms_key(config),))
        )
    if config.encrypts_replicas:
        statements.append(
            PolicyStatement(
                actions=KMS_WRITE_ACTIONS,
                resources=(config.replication_replica_kms_key_id,),
            )
        )
    return PolicyDocument(tuple(statements))


def topic_policy(config: Configuration) -> PolicyDocument:
    """Allow this bucket, and only this bucket, to publish to the topic."""
    return PolicyDocument(
        (
            PolicyStatement(
                sid="AllowS3BucketNotifications",
                principal={"Service": S3_SERVICE_PRINCIPAL},
                actions=("SNS:Publish",),
                resources=(Ref("notification_topic", "arn"),),
                conditions={
                    "ArnLike": {"aws:SourceArn": bucket_arn(config.s3_bucket_name)},
                    "StringEquals": {"aws:SourceAccount": config.account_id},
                },
            ),
        )
    )
