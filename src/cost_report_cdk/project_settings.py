"""Project-wide settings and constants.

Following Zen of Python:
- There should be one obvious way to do it
- Explicit is better than implicit
- Constants in CAPS for clarity
"""
from enum import Enum


class TimeUnit(str, Enum):
    """Granularity of CUR line items."""

    HOURLY = "HOURLY"
    DAILY = "DAILY"


class ReportFormat(str, Enum):
    """CUR file format."""

    TEXT_OR_CSV = "textORcsv"
    PARQUET = "Parquet"


class Compression(str, Enum):
    """CUR file compression."""

    ZIP = "ZIP"
    GZIP = "GZIP"
    PARQUET = "Parquet"


class ReportVersioning(str, Enum):
    """Whether a new report replaces the previous one."""

    CREATE_NEW_REPORT = "CREATE_NEW_REPORT"
    OVERWRITE_REPORT = "OVERWRITE_REPORT"


class StorageClass(str, Enum):
    """Storage classes accepted for replicated objects."""

    STANDARD = "STANDARD"
    REDUCED_REDUNDANCY = "REDUCED_REDUNDANCY"
    STANDARD_IA = "STANDARD_IA"
    ONEZONE_IA = "ONEZONE_IA"
    INTELLIGENT_TIERING = "INTELLIGENT_TIERING"
    GLACIER = "GLACIER"
    DEEP_ARCHIVE = "DEEP_ARCHIVE"
    OUTPOSTS = "OUTPOSTS"


class RefreshFrequency(str, Enum):
    """Refresh cadence of the Cost Optimization Hub export."""

    SYNCHRONOUS = "SYNCHRONOUS"


# The billing and data export APIs only answer in us-east-1,
# wherever the bucket itself lives.
CUR_SERVICE_REGION = "us-east-1"
PARTITION = "aws"
POLICY_VERSION = "2012-10-17"

# Service principals
CUR_SERVICE_PRINCIPAL = "billingreports.amazonaws.com"
DATA_EXPORTS_SERVICE_PRINCIPAL = "bcm-data-exports.amazonaws.com"
S3_SERVICE_PRINCIPAL = "s3.amazonaws.com"

# Cost Optimization Hub export
COH_TABLE_NAME = "COST_OPTIMIZATION_RECOMMENDATIONS"
COH_QUERY_STATEMENT = f"SELECT * FROM {COH_TABLE_NAME}"
COH_EXPORT_TYPE_TAG = "cost-optimization-hub-export"

# Limits enforced by CloudFormation ValidateTemplate
MAX_TEMPLATE_BODY_BYTES = 51_200


def bucket_arn(bucket_name: str) -> str:
    """Return the ARN of an S3 bucket.

    Args:
        bucket_name: Name of the bucket

    Returns:
        Bucket ARN
    """
    return f"arn:{PARTITION}:s3:::{bucket_name}"


def report_definition_arn(account_id: str, report_name: str = "*") -> str:
    """Return the ARN of a CUR report definition (or the account wildcard).

    Args:
        account_id: Owning AWS account
        report_name: Report name, ``*`` for every definition in the account

    Returns:
        Report definition ARN, always in the CUR service region
    """
    return f"arn:{PARTITION}:cur:{CUR_SERVICE_REGION}:{account_id}:definition/{report_name}"


def resource_name(report_name: str, suffix: str) -> str:
    """Generate deterministic resource name derived from the report name.

    Args:
        report_name: CUR report name
        suffix: Resource specific suffix (e.g., 's3-key', 'replication-role')

    Returns:
        Formatted resource name
    """
    return f"{report_name}-{suffix}"
