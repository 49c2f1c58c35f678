"""Parser for package-manager audit JSON (npm v6 and v7+ shapes)."""

from __future__ import annotations

from typing import Any

from bastion.config import SeverityTable
from bastion.core.errors import ParseFailure
from bastion.core.models import Issue, Source


def _vulnerability_title(name: str, vulnerability: dict[str, Any]) -> str:
    for via in vulnerability.get("via", []):
        if isinstance(via, dict) and via.get("title"):
            return str(via["title"])
    dependencies = [via for via in vulnerability.get("via", []) if isinstance(via, str)]
    if dependencies:
        return f"Vulnerable through {', '.join(dependencies)}"
    return "Unknown vulnerability"


def _vulnerability_fix(name: str, fix_available: Any) -> str:
    if isinstance(fix_available, dict) and fix_available.get("name"):
        return f"Update {fix_available['name']} to version {fix_available.get('version', 'latest')}"
    if fix_available:
        return "Run npm audit fix"
    return f"No fix available; consider replacing {name}"


def parse_dependency_audit(payload: Any, manifest: str, table: SeverityTable) -> list[Issue]:
    """Convert audit JSON into one issue per vulnerable package."""
    if not isinstance(payload, dict):
        raise ParseFailure("dependency-audit", "expected a JSON object")

    if "error" in payload:
        error = payload["error"]
        summary = error.get("summary") if isinstance(error, dict) else str(error)
        raise ParseFailure("dependency-audit", str(summary or "audit reported an error"))

    issues: list[Issue] = []
    vulnerabilities = payload.get("vulnerabilities")
    if isinstance(vulnerabilities, dict):
        for name, vulnerability in sorted(vulnerabilities.items()):
            if not isinstance(vulnerability, dict):
                continue
            issues.append(
                Issue(
                    file=manifest,
                    source=Source.DEPENDENCY,
                    severity=table.for_dependency(str(vulnerability.get("severity", "high"))),
                    message=f"Security vulnerability in {name}: {_vulnerability_title(name, vulnerability)}",
                    suggested_fix=_vulnerability_fix(name, vulnerability.get("fixAvailable")),
                    code=name,
                )
            )
        return issues

    advisories = payload.get("advisories")
    if isinstance(advisories, dict):
        for advisory_id, advisory in advisories.items():
            if not isinstance(advisory, dict):
                continue
            module = str(advisory.get("module_name", "unknown"))
            patched = advisory.get("patched_versions") or "latest"
            issues.append(
                Issue(
                    file=manifest,
                    source=Source.DEPENDENCY,
                    severity=table.for_dependency(str(advisory.get("severity", "high"))),
                    message=f"Security vulnerability in {module}: {advisory.get('title', 'Unknown')}",
                    suggested_fix=f"Update {module} to version {patched}",
                    code=f"{module}#{advisory_id}",
                )
            )
        return issues

    if "metadata" in payload or "auditReportVersion" in payload:
        return issues
    raise ParseFailure("dependency-audit", "no vulnerabilities or advisories section")
