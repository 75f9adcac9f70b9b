"""Shared pytest fixtures for Cost Report Infrastructure CDK."""

from pathlib import Path

import pytest
import yaml

ACCOUNT_ID = "123456789012"


@pytest.fixture(autouse=True)
def reset_environment(monkeypatch) -> None:
    """Reset environment variables and settings cache for each test."""
    from cost_report_cdk.settings import get_settings

    get_settings.cache_clear()
    for name in ("ENVIRONMENT", "DEBUG", "LOG_LEVEL", "STACK_ENVIRONMENT", "CONFIG_FILE"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def base_config() -> dict:
    """Scenario A: versioning and public access block only."""
    return {
        "s3_bucket_name": "b",
        "tags": {},
        "account_id": ACCOUNT_ID,
        "enable_kms_encryption": False,
        "enable_replication": False,
        "enable_cost_optimization_hub": False,
        "enable_bucket_notification": False,
        "enable_versioning": True,
        "enable_public_access_block": True,
        "refresh_closed_reports": False,
    }


@pytest.fixture
def replication_config(base_config: dict) -> dict:
    """Scenario B: cross-account replication without KMS."""
    return {
        **base_config,
        "enable_replication": True,
        "replication_destination_bucket": "arn:aws:s3:::dst",
        "replication_destination_account_id": "111111111111",
    }


@pytest.fixture
def full_config(base_config: dict) -> dict:
    """Every optional feature switched on, generated key and topic."""
    return {
        **base_config,
        "s3_bucket_name": "finops-cur-reports",
        "tags": {"Environment": "Red", "Owner": "Finops"},
        "enable_kms_encryption": True,
        "enable_replication": True,
        "replication_destination_bucket": "arn:aws:s3:::dst",
        "replication_destination_account_id": "111111111111",
        "replication_replica_kms_key_id": "arn:aws:kms:eu-west-1:111111111111:key/replica",
        "enable_cost_optimization_hub": True,
        "coh_s3_prefix": "coh",
        "enable_bucket_notification": True,
    }


@pytest.fixture
def config_file(tmp_path: Path, full_config: dict) -> Path:
    """A config.yaml with a single FINOPS environment block."""
    cur = {
        key: value
        for key, value in full_config.items()
        if key not in ("account_id", "tags")
    }
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "FINOPS": {
                    "account": ACCOUNT_ID,
                    "region": "us-east-1",
                    "stack_name": "finops-cur",
                    "tags": full_config["tags"],
                    "cur": cur,
                }
            }
        )
    )
    return path
