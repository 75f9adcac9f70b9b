"""Checks applied to a synthesized CloudFormation template.

Offline checks inspect the template dict: required sections, body size,
hard-coded credentials and the report definition ordering. Advisory
checks (wildcard policy resources, unencrypted buckets, long logical IDs)
are warnings. The online check asks CloudFormation to validate the body.
"""

import json
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import ExternalProvisioningError
from .logger import get_logger
from .project_settings import CUR_SERVICE_REGION, MAX_TEMPLATE_BODY_BYTES

logger = get_logger(__name__)

REQUIRED_SECTIONS = ("Resources", "Outputs")
MAX_LOGICAL_ID_LENGTH = 255

_CREDENTIAL_PATTERNS = (
    re.compile(r"AKIA[0-9A-Z]{16}"),
    re.compile(r"aws_secret_access_key", re.IGNORECASE),
)


class Severity(str, Enum):
    """Errors always fail a report; warnings only with fail_on_warnings."""

    ERROR = "error"
    WARNING = "warning"


@dataclass
class CheckResult:
    name: str
    passed: bool
    detail: str = ""
    severity: Severity = Severity.ERROR


@dataclass
class TemplateReport:
    """Outcome of the offline template checks."""

    results: list[CheckResult] = field(default_factory=list)
    fail_on_warnings: bool = False

    @property
    def passed(self) -> bool:
        if self.failures:
            return False
        return not (self.fail_on_warnings and self.warnings)

    @property
    def failures(self) -> list[CheckResult]:
        return [r for r in self.results if not r.passed and r.severity == Severity.ERROR]

    @property
    def warnings(self) -> list[CheckResult]:
        return [r for r in self.results if not r.passed and r.severity == Severity.WARNING]

    def summary(self) -> str:
        errors = [r for r in self.results if r.severity == Severity.ERROR]
        passed = sum(1 for r in errors if r.passed)
        summary = f"{passed}/{len(errors)} checks passed"
        if self.warnings:
            summary += f", {len(self.warnings)} warning(s)"
        return summary


def template_body(template: dict[str, Any]) -> str:
    return json.dumps(template, indent=1, sort_keys=True)


def check_sections(template: dict[str, Any]) -> CheckResult:
    missing = [section for section in REQUIRED_SECTIONS if not template.get(section)]
    return CheckResult(
        "required_sections",
        not missing,
        f"missing: {', '.join(missing)}" if missing else "",
    )


def check_description(template: dict[str, Any]) -> CheckResult:
    return CheckResult("description", bool(template.get("Description")))


def check_size(template: dict[str, Any]) -> CheckResult:
    size = len(template_body(template).encode("utf-8"))
    return CheckResult(
        "template_size",
        size <= MAX_TEMPLATE_BODY_BYTES,
        f"{size} bytes (limit {MAX_TEMPLATE_BODY_BYTES})",
    )


def check_credentials(template: dict[str, Any]) -> CheckResult:
    body = template_body(template)
    hits = [pattern.pattern for pattern in _CREDENTIAL_PATTERNS if pattern.search(body)]
    return CheckResult(
        "no_hardcoded_credentials",
        not hits,
        f"matched: {', '.join(hits)}" if hits else "",
    )


def check_report_ordering(template: dict[str, Any]) -> CheckResult:
    """The report definition must wait for the bucket policy."""
    resources = template.get("Resources", {})
    policies = {
        logical_id
        for logical_id, resource in resources.items()
        if resource.get("Type") == "AWS::S3::BucketPolicy"
    }
    reports = {
        logical_id: resource
        for logical_id, resource in resources.items()
        if resource.get("Type") == "AWS::CUR::ReportDefinition"
    }
    if not reports:
        return CheckResult("report_after_bucket_policy", False, "no AWS::CUR::ReportDefinition")

    unordered = []
    for logical_id, resource in reports.items():
        depends_on = resource.get("DependsOn", [])
        if isinstance(depends_on, str):
            depends_on = [depends_on]
        if not policies.intersection(depends_on):
            unordered.append(logical_id)
    return CheckResult(
        "report_after_bucket_policy",
        not unordered,
        f"missing DependsOn: {', '.join(unordered)}" if unordered else "",
    )


def _statements(value: Any) -> Iterator[dict[str, Any]]:
    """Yield every policy statement nested anywhere in a property value."""
    if isinstance(value, dict):
        statements = value.get("Statement")
        if isinstance(statements, list):
            yield from (s for s in statements if isinstance(s, dict))
        for item in value.values():
            yield from _statements(item)
    elif isinstance(value, list):
        for item in value:
            yield from _statements(item)


def check_wildcard_resources(template: dict[str, Any]) -> CheckResult:
    """Policy statements granting on ``"Resource": "*"``.

    Key policies always name ``*`` (the key itself), so this is advisory.
    """
    hits = []
    for logical_id, resource in template.get("Resources", {}).items():
        for statement in _statements(resource.get("Properties", {})):
            resources = statement.get("Resource", [])
            if resources == "*" or (isinstance(resources, list) and "*" in resources):
                hits.append(logical_id)
                break
    return CheckResult(
        "no_wildcard_resources",
        not hits,
        f"review for least privilege: {', '.join(hits)}" if hits else "",
        Severity.WARNING,
    )


def check_bucket_encryption(template: dict[str, Any]) -> CheckResult:
    unencrypted = [
        logical_id
        for logical_id, resource in template.get("Resources", {}).items()
        if resource.get("Type") == "AWS::S3::Bucket"
        and "BucketEncryption" not in resource.get("Properties", {})
    ]
    return CheckResult(
        "bucket_encryption",
        not unencrypted,
        f"no BucketEncryption: {', '.join(unencrypted)}" if unencrypted else "",
        Severity.WARNING,
    )


def check_logical_ids(template: dict[str, Any]) -> CheckResult:
    long_ids = [
        logical_id
        for logical_id in template.get("Resources", {})
        if len(logical_id) > MAX_LOGICAL_ID_LENGTH
    ]
    return CheckResult(
        "logical_id_length",
        not long_ids,
        f"longer than {MAX_LOGICAL_ID_LENGTH} characters: {', '.join(long_ids)}" if long_ids else "",
        Severity.WARNING,
    )


def run_template_checks(template: dict[str, Any], fail_on_warnings: bool = False) -> TemplateReport:
    """Run every offline check against a template dict.

    Args:
        template: Synthesized template
        fail_on_warnings: Treat failed advisory checks as failures
    """
    report = TemplateReport(
        [
            check_sections(template),
            check_description(template),
            check_size(template),
            check_credentials(template),
            check_report_ordering(template),
            check_wildcard_resources(template),
            check_bucket_encryption(template),
            check_logical_ids(template),
        ],
        fail_on_warnings=fail_on_warnings,
    )
    for result in report.results:
        log = logger.info if result.passed else logger.warning
        log(
            "template_check",
            check=result.name,
            passed=result.passed,
            severity=result.severity.value,
            detail=result.detail,
        )
    return report


def validate_with_cloudformation(
    body: str,
    region: str = CUR_SERVICE_REGION,
    client: Any | None = None,
) -> dict[str, Any]:
    """Validate a template body with the CloudFormation API.

    Args:
        body: Template body (JSON or YAML)
        region: Region to call, CUR stacks live in us-east-1
        client: Optional preconfigured CloudFormation client

    Returns:
        The ValidateTemplate response

    Raises:
        ExternalProvisioningError: If CloudFormation rejects the template
    """
    cfn = client or boto3.client("cloudformation", region_name=region)
    try:
        response = cfn.validate_template(TemplateBody=body)
    except ClientError as e:
        error = e.response.get("Error", {})
        raise ExternalProvisioningError(
            f"CloudFormation rejected the template: {error.get('Message', e)}",
            code=error.get("Code", "Unknown"),
            region=region,
        ) from e
    except BotoCoreError as e:
        raise ExternalProvisioningError(
            f"CloudFormation validation could not be performed: {e}",
            region=region,
        ) from e

    logger.info(
        "template_validated",
        region=region,
        parameters=len(response.get("Parameters", [])),
        capabilities=response.get("Capabilities", []),
    )
    return response
