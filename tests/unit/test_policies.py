"""Unit tests for policy documents."""
import pytest

from cost_report_cdk.graph import Ref, load_configuration
from cost_report_cdk.graph import policies
from cost_report_cdk.graph.policies import PolicyDocument, PolicyStatement


@pytest.fixture
def kms_config(base_config):
    return load_configuration({**base_config, "enable_kms_encryption": True})


class TestPolicyStatement:
    """Rendering of single statements."""

    def test_single_values_collapse(self):
        statement = PolicyStatement(actions=("s3:PutObject",), resources=("arn:aws:s3:::b/*",), sid="Put")

        assert statement.to_dict() == {
            "Sid": "Put",
            "Effect": "Allow",
            "Action": "s3:PutObject",
            "Resource": "arn:aws:s3:::b/*",
        }

    def test_trust_statement_has_no_resource(self):
        document = policies.replication_assume_role_policy().to_dict()

        assert document["Version"] == "2012-10-17"
        assert document["Statement"] == [
            {
                "Effect": "Allow",
                "Principal": {"Service": "s3.amazonaws.com"},
                "Action": "sts:AssumeRole",
            }
        ]

    def test_document_sids(self):
        document = PolicyDocument(
            (
                PolicyStatement(actions=("a",), resources=("*",), sid="One"),
                PolicyStatement(actions=("b",), resources=("*",)),
            )
        )

        assert document.sids == ["One"]


class TestBucketPolicy:
    """Bucket policy statement sets."""

    def test_cur_statements_only(self, base_config):
        document = policies.bucket_policy(load_configuration(base_config))

        assert document.sids == ["AllowCURServiceGetBucketAcl", "AllowCURServicePutObject"]
        get_acl, put = document.to_dict()["Statement"]
        assert get_acl["Principal"] == {"Service": "billingreports.amazonaws.com"}
        assert get_acl["Action"] == ["s3:GetBucketAcl", "s3:GetBucketPolicy"]
        assert get_acl["Resource"] == "arn:aws:s3:::b"
        assert put["Resource"] == "arn:aws:s3:::b/*"
        assert put["Condition"] == {
            "StringEquals": {
                "AWS:SourceArn": "arn:aws:cur:us-east-1:123456789012:definition/*",
                "AWS:SourceAccount": "123456789012",
            }
        }

    def test_cost_optimization_hub_statements(self, base_config):
        document = policies.bucket_policy(
            load_configuration({**base_config, "enable_cost_optimization_hub": True})
        )

        assert document.sids[2:] == ["AllowCOHServiceGetBucketAcl", "AllowCOHServicePutObject"]
        coh = document.to_dict()["Statement"][2]
        assert coh["Principal"] == {"Service": "bcm-data-exports.amazonaws.com"}
        assert coh["Condition"] == {"StringEquals": {"AWS:SourceAccount": "123456789012"}}

    def test_replication_statements(self, replication_config):
        document = policies.bucket_policy(load_configuration(replication_config))

        assert document.sids[-2:] == ["AllowReplicationServiceAccess", "AllowReplicationServiceList"]
        access, listing = document.statements[-2:]
        assert access.principal == {"AWS": Ref("replication_role", "arn")}
        assert listing.actions == ("s3:ListBucket",)


class TestKmsKeyPolicy:
    """KMS key policy statement sets."""

    def test_base_statements(self, kms_config):
        document = policies.kms_key_policy(kms_config)

        assert document.sids == ["EnableRootAccess", "AllowCURService", "AllowS3Service"]
        root = document.to_dict()["Statement"][0]
        assert root["Principal"] == {"AWS": "arn:aws:iam::123456789012:root"}
        assert root["Action"] == "kms:*"

    def test_replication_destination_statement(self, replication_config):
        config = load_configuration({**replication_config, "enable_kms_encryption": True})

        document = policies.kms_key_policy(config)

        assert "AllowReplicationDestinationAccess" in document.sids
        statement = document.to_dict()["Statement"][3]
        assert statement["Principal"] == {"AWS": "arn:aws:iam::111111111111:root"}

    def test_data_exports_statement(self, base_config):
        config = load_configuration(
            {**base_config, "enable_kms_encryption": True, "enable_cost_optimization_hub": True}
        )

        assert policies.kms_key_policy(config).sids[-1] == "AllowDataExportsService"


class TestReplicationRolePolicy:
    """Permissions of the replication role."""

    def test_without_encryption(self, replication_config):
        document = policies.replication_role_policy(load_configuration(replication_config))

        assert len(document.statements) == 2
        destination = document.to_dict()["Statement"][1]
        assert destination["Resource"] == "arn:aws:s3:::dst/*"
        assert destination["Action"] == ["s3:ReplicateObject", "s3:ReplicateDelete", "s3:ReplicateTags"]

    def test_generated_key_is_referenced(self, replication_config):
        config = load_configuration({**replication_config, "enable_kms_encryption": True})

        document = policies.replication_role_policy(config)

        assert document.statements[2].resources == (Ref("kms_key", "arn"),)

    def test_external_and_replica_keys(self, replication_config):
        config = load_configuration(
            {
                **replication_config,
                "enable_kms_encryption": True,
                "kms_key_id": "arn:aws:kms:us-east-1:123456789012:key/source",
                "replication_replica_kms_key_id": "arn:aws:kms:eu-west-1:111111111111:key/replica",
            }
        )

        statements = policies.replication_role_policy(config).to_dict()["Statement"]

        assert statements[2]["Resource"] == "arn:aws:kms:us-east-1:123456789012:key/source"
        assert statements[3]["Action"] == ["kms:Encrypt", "kms:GenerateDataKey"]
        assert statements[3]["Resource"] == "arn:aws:kms:eu-west-1:111111111111:key/replica"


def test_topic_policy_scoped_to_bucket(base_config):
    """Only this bucket in this account may publish."""
    statement = policies.topic_policy(load_configuration(base_config)).to_dict()["Statement"][0]

    assert statement["Sid"] == "AllowS3BucketNotifications"
    assert statement["Resource"] == Ref("notification_topic", "arn")
    assert statement["Condition"] == {
        "ArnLike": {"aws:SourceArn": "arn:aws:s3:::b"},
        "StringEquals": {"aws:SourceAccount": "123456789012"},
    }
