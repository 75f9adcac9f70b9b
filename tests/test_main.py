"""Tests for main module."""

import json
from pathlib import Path

import pytest
import yaml

from cost_report_cdk import main as cli
from cost_report_cdk.exceptions import ExternalProvisioningError


def _rewrite(path: Path, block: str = "FINOPS", **changes) -> None:
    """Apply changes to one environment block of a config file."""
    config = yaml.safe_load(path.read_text())
    cur = changes.pop("cur", {})
    config[block].update(changes)
    config[block]["cur"].update(cur)
    path.write_text(yaml.safe_dump(config))


@pytest.mark.unit
class TestPlan:
    """Test suite for the plan command."""

    def test_plan_prints_graph(self, config_file: Path, capsys: pytest.CaptureFixture) -> None:
        """plan prints the evaluated graph as JSON."""
        exit_code = cli.main(["--config", str(config_file), "--environment", "finops", "plan"])

        assert exit_code == 0
        graph = json.loads(capsys.readouterr().out)
        names = [node["name"] for node in graph["nodes"]]
        assert names[0] == "kms_key"
        assert names.index("bucket_policy") < names.index("report_definition")
        assert graph["outputs"]["s3_bucket_arn"] == "arn:aws:s3:::finops-cur-reports"
        assert graph["outputs"]["s3_bucket_id"] == "${bucket.id}"

    def test_plan_unknown_environment(self, config_file: Path, capsys: pytest.CaptureFixture) -> None:
        """An unknown environment block is reported, not raised."""
        exit_code = cli.main(["--config", str(config_file), "--environment", "prod", "plan"])

        assert exit_code == 1
        err = capsys.readouterr().err
        assert "ConfigurationError" in err
        assert "available=FINOPS" in err

    def test_plan_missing_config_file(self, tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
        """A missing config file is reported as a configuration error."""
        exit_code = cli.main(["--config", str(tmp_path / "missing.yaml"), "plan"])

        assert exit_code == 1
        assert "Configuration file not found" in capsys.readouterr().err

    def test_plan_reports_invalid_configuration(
        self, config_file: Path, capsys: pytest.CaptureFixture
    ) -> None:
        """A bad enumeration value surfaces as a ValidationError."""
        _rewrite(config_file, cur={"format": "csv"})

        exit_code = cli.main(["--config", str(config_file), "plan"])

        assert exit_code == 1
        err = capsys.readouterr().err
        assert "ValidationError" in err
        assert "field=format" in err


@pytest.mark.unit
class TestCheck:
    """Test suite for the check command."""

    def test_check_passes(self, config_file: Path, capsys: pytest.CaptureFixture) -> None:
        """A synthesized template passes every offline check."""
        exit_code = cli.main(["--config", str(config_file), "check"])

        assert exit_code == 0
        assert "5/5 checks passed" in capsys.readouterr().out

    def test_check_fail_on_warnings(self, config_file: Path, capsys: pytest.CaptureFixture) -> None:
        """Advisory warnings fail the run only when asked to."""
        exit_code = cli.main(["--config", str(config_file), "check", "--fail-on-warnings"])

        assert exit_code == 1
        assert "! no_wildcard_resources" in capsys.readouterr().out

    def test_check_with_validate(
        self,
        config_file: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture,
    ) -> None:
        """--validate hands the template body to CloudFormation."""
        calls = []

        def fake_validate(body: str, region: str) -> dict:
            calls.append((json.loads(body), region))
            return {"Parameters": []}

        monkeypatch.setattr(cli, "validate_with_cloudformation", fake_validate)

        exit_code = cli.main(["--config", str(config_file), "check", "--validate"])

        assert exit_code == 0
        assert len(calls) == 1
        template, region = calls[0]
        assert region == "us-east-1"
        assert "CURReportDefinition" in template["Resources"]
        assert "CloudFormation validation passed" in capsys.readouterr().out

    def test_check_validate_rejected(
        self,
        config_file: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture,
    ) -> None:
        """A CloudFormation rejection becomes a non-zero exit code."""

        def fake_validate(body: str, region: str) -> dict:
            raise ExternalProvisioningError("CloudFormation rejected the template", code="ValidationError")

        monkeypatch.setattr(cli, "validate_with_cloudformation", fake_validate)

        exit_code = cli.main(["--config", str(config_file), "check", "--validate"])

        assert exit_code == 1
        assert "ExternalProvisioningError" in capsys.readouterr().err

    def test_check_rejects_wrong_region(self, config_file: Path, capsys: pytest.CaptureFixture) -> None:
        """Report definitions cannot be deployed outside us-east-1."""
        _rewrite(config_file, region="eu-west-1")

        exit_code = cli.main(["--config", str(config_file), "check"])

        assert exit_code == 1
        err = capsys.readouterr().err
        assert "ConfigurationError" in err
        assert "required_region=us-east-1" in err


def test_command_is_required() -> None:
    """argparse exits when no subcommand is given."""
    with pytest.raises(SystemExit):
        cli.main([])
