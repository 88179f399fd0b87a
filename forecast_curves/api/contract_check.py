"""
Contract check for the curve API's OpenAPI document.

Chart and upload clients depend on three things: the curve operation set, camelCase
payload fields inside snake_case envelopes, and no silent removals between releases.
Removals only pass when the version path moved. The job writes a snapshot and a
markdown report, and exits non-zero when the contract is broken.
"""

from __future__ import annotations

import argparse
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from forecast_curves.api.api_config import get_api_config
from forecast_curves.api.app import app
from forecast_curves.api.schema_versions import detect_breaking_schema_changes
from forecast_curves.common.logging import configure_logging

LOGGER = logging.getLogger("api")

DEFAULT_SNAPSHOT_PATH = "reports/curves_api/contract_checks/latest_contract_snapshot.json"
DEFAULT_REPORT_PATH = "reports/curves_api/contract_checks/contract_diff_report.md"

UNVERSIONED_OPERATIONS: tuple[tuple[str, str], ...] = (
    ("get", "/health"),
    ("get", "/ready"),
    ("get", "/version"),
)

CURVE_OPERATIONS: tuple[tuple[str, str], ...] = (
    ("get", "/curves/locations"),
    ("get", "/curves/definitions"),
    ("get", "/curves/definitions/{definition_id}/instances"),
    ("get", "/curves/definitions/{definition_id}/freshness"),
    ("get", "/curves/data"),
    ("get", "/curves/aggregate"),
    ("get", "/curves/summary"),
    ("get", "/curves/export.csv"),
    ("get", "/curves/export-batch.csv"),
    ("post", "/curves/overlay"),
    ("post", "/curves/upload"),
    ("post", "/curves/instances"),
    ("post", "/curves/instances/{instance_id}/data"),
    ("patch", "/curves/points/{point_id}"),
    ("post", "/curves/instances/{instance_id}/status"),
)

ENVELOPE_FIELDS: tuple[str, ...] = ("api_version", "schema_version", "request_id", "data")

_PAYLOAD_SCHEMA_RE = re.compile(r"^[A-Z]\w*V1(-Input|-Output)?$")
_ENVELOPE_SCHEMA_RE = re.compile(r"^[A-Z]\w*ResponseV1(-Input|-Output)?$")


@dataclass(frozen=True)
class ContractCheckResult:
    api_version_path: str
    missing_operations: list[str] = field(default_factory=list)
    casing_findings: list[str] = field(default_factory=list)
    envelope_findings: list[str] = field(default_factory=list)
    breaking_findings: list[str] = field(default_factory=list)
    version_path_changed: bool = False
    baseline_created: bool = False

    @property
    def passed(self) -> bool:
        if self.missing_operations or self.casing_findings or self.envelope_findings:
            return False
        return not self.breaking_findings or self.version_path_changed

    def to_dict(self) -> dict[str, Any]:
        return {
            "api_version_path": self.api_version_path,
            "passed": self.passed,
            "baseline_created": self.baseline_created,
            "missing_operations": self.missing_operations,
            "casing_findings": self.casing_findings,
            "envelope_findings": self.envelope_findings,
            "breaking_findings": self.breaking_findings,
            "version_path_changed": self.version_path_changed,
        }


def required_operations(api_version_path: str) -> list[tuple[str, str]]:
    prefix = api_version_path.rstrip("/")
    return [*UNVERSIONED_OPERATIONS, *[(method, f"{prefix}{path}") for method, path in CURVE_OPERATIONS]]


def missing_operations(openapi: dict[str, Any], api_version_path: str) -> list[str]:
    paths: dict[str, Any] = openapi.get("paths", {})
    return [
        f"{method.upper()} {path}"
        for method, path in required_operations(api_version_path)
        if method not in paths.get(path, {})
    ]


def _schemas(openapi: dict[str, Any]) -> dict[str, Any]:
    return openapi.get("components", {}).get("schemas", {})


def casing_findings(openapi: dict[str, Any]) -> list[str]:
    """Curve payload models must expose camelCase properties only."""

    findings: list[str] = []
    for name, schema in sorted(_schemas(openapi).items()):
        if not _PAYLOAD_SCHEMA_RE.match(name) or _ENVELOPE_SCHEMA_RE.match(name):
            continue
        for prop in sorted(schema.get("properties", {})):
            if "_" in prop:
                findings.append(f"Schema {name} exposes snake_case property: {prop}")
    return findings


def envelope_findings(openapi: dict[str, Any]) -> list[str]:
    """Response envelopes keep their snake_case version and tracing fields."""

    findings: list[str] = []
    for name, schema in sorted(_schemas(openapi).items()):
        if not _ENVELOPE_SCHEMA_RE.match(name):
            continue
        properties = schema.get("properties", {})
        for envelope_field in ENVELOPE_FIELDS:
            if envelope_field not in properties:
                findings.append(f"Envelope {name} is missing field: {envelope_field}")
    return findings


def build_snapshot(openapi: dict[str, Any], *, api_version_path: str, schema_version: str) -> dict[str, Any]:
    return {
        "api_version_path": api_version_path,
        "schema_version": schema_version,
        "generated_at": datetime.now(tz=UTC).isoformat(),
        "paths": openapi.get("paths", {}),
        "components": openapi.get("components", {}),
    }


def run_contract_check(
    openapi: dict[str, Any],
    *,
    api_version_path: str,
    schema_version: str,
    snapshot_path: Path,
    report_path: Path,
) -> ContractCheckResult:
    current = build_snapshot(openapi, api_version_path=api_version_path, schema_version=schema_version)
    previous: dict[str, Any] | None = None
    if snapshot_path.exists():
        previous = json.loads(snapshot_path.read_text(encoding="utf-8"))

    breaking: list[str] = []
    version_path_changed = False
    if previous is not None:
        breaking = detect_breaking_schema_changes(previous_snapshot=previous, current_snapshot=current)
        version_path_changed = str(previous.get("api_version_path", "")) != api_version_path

    result = ContractCheckResult(
        api_version_path=api_version_path,
        missing_operations=missing_operations(openapi, api_version_path),
        casing_findings=casing_findings(openapi),
        envelope_findings=envelope_findings(openapi),
        breaking_findings=breaking,
        version_path_changed=version_path_changed,
        baseline_created=previous is None,
    )

    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(render_report(result, schema_version=schema_version), encoding="utf-8")
    if result.passed:
        snapshot_path.parent.mkdir(parents=True, exist_ok=True)
        snapshot_path.write_text(json.dumps(current, indent=2, sort_keys=True), encoding="utf-8")
    else:
        LOGGER.warning("Contract check failed; snapshot at %s left unchanged", snapshot_path)
    return result


def render_report(result: ContractCheckResult, *, schema_version: str) -> str:
    lines: list[str] = [
        "# Curve API Contract Report",
        "",
        f"Generated at: {datetime.now(tz=UTC).isoformat()}",
        "",
        f"API version path: `{result.api_version_path}`",
        f"Schema version: `{schema_version}`",
        f"Status: {'PASS' if result.passed else 'FAIL'}",
        "",
    ]
    sections = (
        ("Missing Operations", result.missing_operations),
        ("Casing", result.casing_findings),
        ("Envelopes", result.envelope_findings),
        ("Breaking Changes", result.breaking_findings),
    )
    for title, findings in sections:
        lines.extend([f"## {title}", ""])
        lines.extend([f"- {item}" for item in findings] or ["None."])
        lines.append("")
    if result.baseline_created:
        lines.append("No previous snapshot existed; this run created the baseline.")
    elif result.breaking_findings and result.version_path_changed:
        lines.append("Breaking changes accepted because the API version path changed.")
    return "\n".join(lines).rstrip() + "\n"


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Check the curve API OpenAPI contract")
    parser.add_argument("--snapshot-path", default=DEFAULT_SNAPSHOT_PATH)
    parser.add_argument("--report-path", default=DEFAULT_REPORT_PATH)
    return parser.parse_args()


def main() -> int:
    configure_logging()
    args = parse_args()
    config = get_api_config()
    result = run_contract_check(
        app.openapi(),
        api_version_path=config.api_version_path,
        schema_version=config.schema_version,
        snapshot_path=Path(args.snapshot_path),
        report_path=Path(args.report_path),
    )
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.passed else 1


if __name__ == "__main__":
    raise SystemExit(main())
