#!/usr/bin/env python3
"""
Cost and Usage Report Infrastructure CDK Application

Creates the CUR delivery bucket, the report definition and, depending on
config.yaml, a KMS key, cross-account replication, SNS notifications and a
Cost Optimization Hub export.

The report definition and data export APIs are served from us-east-1,
so every environment block must deploy there.
"""
import sys

import aws_cdk as cdk

from cost_report_cdk import logging_config  # noqa: F401  configures structlog on import
from cost_report_cdk.deployment import build_stack, environment_config, load_config
from cost_report_cdk.exceptions import CostReportCdkError
from cost_report_cdk.settings import get_settings
from cost_report_cdk.tracing import setup_tracing_from_settings, shutdown_tracing

settings = get_settings()
setup_tracing_from_settings(settings)

app = cdk.App()

# Environment block to deploy, e.g. STACK_ENVIRONMENT=finops
environment = app.node.try_get_context("environment") or settings.stack_environment

try:
    config = load_config(settings.config_file)
    env_config = environment_config(config, environment.upper())
    build_stack(app, environment.upper(), env_config)
except CostReportCdkError as e:
    print(f"\n❌ Configuration Error: {e}\n", file=sys.stderr)
    sys.exit(1)

app.synth()
shutdown_tracing()
