"""Consolidated JSON report of manifests, packages, violations and threats."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from vetscan.reporter.base import (
    AnalyzerEvent,
    Package,
    PackageInsights,
    PackageManifest,
    Reporter,
    ReportThreat,
    ThreatSubjectType,
)
from vetscan.schemamapper import InsightsVulnerabilitySeverity, insights_severity_to_model_severity

logger = logging.getLogger(__name__)

RemediationAdvisor = Callable[[Package, dict], dict]

ADVICE_UPGRADE_PACKAGE = "UpgradePackage"


@dataclass
class JsonReportingConfig:
    path: str


def _spec_ecosystem(ecosystem: str) -> str:
    return ecosystem.upper()


def _threat_dict(threat: ReportThreat) -> dict[str, Any]:
    return {
        "id": threat.id,
        "subject": threat.subject,
        "subjectType": threat.subject_type.value,
        "message": threat.message,
    }


class JsonReportGenerator(Reporter):
    """Collects scan data keyed by manifest and package and writes it as JSON.

    ``remediations`` may turn a package and a violation into a remediation
    advice; without it, violations carry no advice of their own.
    """

    def __init__(self, config: JsonReportingConfig, remediations: RemediationAdvisor | None = None) -> None:
        self.config = config
        self._remediations = remediations
        self._manifests: dict[str, dict[str, Any]] = {}
        self._packages: dict[str, dict[str, Any]] = {}

    def name(self) -> str:
        return "JSON Report Generator"

    def add_manifest(self, manifest: PackageManifest) -> None:
        self._manifest_report(manifest)
        manifest_id = manifest.id()
        for pkg in manifest.packages:
            manifests = self._package_report(pkg)["manifests"]
            if manifest_id not in manifests:
                manifests.append(manifest_id)

    def add_analyzer_event(self, event: AnalyzerEvent) -> None:
        if event.is_filter_match():
            self._handle_filter_event(event)
        elif event.is_lockfile_poisoning_signal():
            self._handle_threat_event(event)

    def add_policy_event(self, event: Any) -> None:
        pass

    def finish(self) -> None:
        logger.info("Generating consolidated Json report: %s", self.config.path)
        with open(self.config.path, "w", encoding="utf-8") as handle:
            json.dump(self.build_report(), handle)

    def build_report(self) -> dict[str, Any]:
        """The report as a JSON-ready dictionary."""
        return {
            "meta": {
                "toolName": "vet",
                "toolVersion": "latest",
                "createdAt": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            },
            "manifests": list(self._manifests.values()),
            "packages": list(self._packages.values()),
        }

    def _handle_threat_event(self, event: AnalyzerEvent) -> None:
        threat = event.threat
        if threat is None:
            return
        if threat.subject_type is ThreatSubjectType.MANIFEST and event.manifest is not None:
            self._manifest_report(event.manifest)["threats"].append(_threat_dict(threat))
        elif threat.subject_type is ThreatSubjectType.PACKAGE and event.package is not None:
            self._package_report(event.package)["threats"].append(_threat_dict(threat))

    def _handle_filter_event(self, event: AnalyzerEvent) -> None:
        if event.package is None:
            logger.warning("Analyzer event with nil package")
            return
        if event.package.manifest is None:
            logger.warning("Analyzer event with nil package manifest")
            return
        flt = event.filter
        if flt is None:
            logger.warning("Analyzer event that matched filter but without Filter object")
            return

        report = self._package_report(event.package)
        if any(v["filter"]["name"] == flt.name for v in report["violations"]):
            return

        violation = {
            "checkType": flt.check_type.value,
            "filter": {
                "name": flt.name,
                "summary": flt.summary,
                "value": flt.value,
                "checkType": flt.check_type.value,
            },
        }
        report["violations"].append(violation)

        if self._remediations is None:
            return
        try:
            report["advices"].append(self._remediations(event.package, violation))
        except Exception as exc:  # noqa: BLE001 - advice is best effort
            logger.warning(
                "Failed to generate remediation for %s due to %s",
                f"{event.package.name}@{event.package.version}",
                exc,
            )

    def _manifest_report(self, manifest: PackageManifest) -> dict[str, Any]:
        manifest_id = manifest.id()
        if manifest_id not in self._manifests:
            self._manifests[manifest_id] = {
                "id": manifest_id,
                "sourceType": manifest.source.type.value,
                "namespace": manifest.source.namespace,
                "path": manifest.source.path,
                "displayPath": manifest.display_path,
                "ecosystem": _spec_ecosystem(manifest.ecosystem),
                "threats": [],
            }
        return self._manifests[manifest_id]

    def _package_report(self, pkg: Package) -> dict[str, Any]:
        pkg_id = pkg.id()
        if pkg_id not in self._packages:
            self._packages[pkg_id] = self._build_package_report(pkg)
        return self._packages[pkg_id]

    def _build_package_report(self, pkg: Package) -> dict[str, Any]:
        ecosystem = pkg.ecosystem or (pkg.manifest.ecosystem if pkg.manifest else "")
        insights = pkg.insights or PackageInsights()

        vulnerabilities = []
        for vuln in insights.vulnerabilities:
            severities = []
            for sev in vuln.severities:
                mapped = insights_severity_to_model_severity(
                    InsightsVulnerabilitySeverity(risk=sev.risk, score=sev.score, type=sev.type)
                )
                severities.append({"type": mapped.type.value, "risk": mapped.risk.value, "score": mapped.score})
            vulnerabilities.append(
                {"id": vuln.id, "title": vuln.summary, "aliases": list(vuln.aliases), "severities": severities}
            )

        projects = [{"name": p.name, "stars": p.stars, "url": p.link} for p in insights.projects]
        if not insights.projects:
            # Some ecosystems lack project data; fall back to the scorecard repository.
            project_url = insights.scorecard_repository_name or ""
            parts = project_url.split("/", 1)
            project_name = parts[1] if len(parts) == 2 else ""
            if project_url and not project_url.startswith("http"):
                project_url = "https://" + project_url
            if project_url:
                projects.append({"name": project_name, "url": project_url})

        advices = []
        if vulnerabilities:
            advices.append(
                {
                    "type": ADVICE_UPGRADE_PACKAGE,
                    "targetAlternatePackageVersion": insights.package_current_version or "",
                }
            )

        return {
            "package": {"ecosystem": _spec_ecosystem(ecosystem), "name": pkg.name, "version": pkg.version},
            "manifests": [],
            "violations": [],
            "advices": advices,
            "vulnerabilities": vulnerabilities,
            "licenses": [{"id": license_id} for license_id in insights.licenses],
            "projects": projects,
            "threats": [],
        }