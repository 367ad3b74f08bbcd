"""CSV report of packages that matched a filter."""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass, replace
from typing import Any

from vetscan.reporter.base import AnalyzerEvent, PackageInsights, PackageManifest, Reporter

logger = logging.getLogger(__name__)

_HEADER = (
    "Ecosystem",
    "Manifest Path",
    "Package Name",
    "Package Version",
    "Violation",
    "Introduced By",
    "Path To Root",
    "OSV ID",
    "CVE ID",
    "Vulnerability Severity",
    "Vulnerability Summary",
)

_CVSS_TYPES = ("CVSSV2", "CVSSV3")


@dataclass
class CsvReportingConfig:
    path: str


@dataclass(frozen=True)
class _CsvRecord:
    ecosystem: str
    manifest_path: str
    package_name: str
    package_version: str
    violation_reason: str
    introduced_by: str = ""
    path_to_root: str = ""
    osv_id: str = ""
    cve_id: str = ""
    vuln_severity: str = ""
    vuln_summary: str = ""

    def row(self) -> list[str]:
        return [
            self.ecosystem,
            self.manifest_path,
            self.package_name,
            self.package_version,
            self.violation_reason,
            self.introduced_by,
            self.path_to_root,
            self.osv_id,
            self.cve_id,
            self.vuln_severity,
            self.vuln_summary,
        ]


class CsvReporter(Reporter):
    """Writes one row per filtered package, flattened per vulnerability."""

    def __init__(self, config: CsvReportingConfig) -> None:
        self.config = config
        self._violations: dict[str, AnalyzerEvent] = {}

    def name(self) -> str:
        return "CSV Report Generator"

    def add_manifest(self, manifest: PackageManifest) -> None:
        pass

    def add_analyzer_event(self, event: AnalyzerEvent) -> None:
        if not event.is_filter_match():
            return
        if event.package is None or event.package.manifest is None:
            return
        self._violations.setdefault(event.package.id(), event)

    def add_policy_event(self, event: Any) -> None:
        super().add_policy_event(event)

    def finish(self) -> None:
        logger.info("Generating consolidated CSV report: %s", self.config.path)
        records = [record for event in self._violations.values() for record in self._records(event)]
        with open(self.config.path, "w", newline="", encoding="utf-8") as handle:
            writer = csv.writer(handle, lineterminator="\n")
            writer.writerow(_HEADER)
            writer.writerows(record.row() for record in records)

    def _records(self, event: AnalyzerEvent) -> list[_CsvRecord]:
        if not isinstance(event.message, str):
            return []
        pkg = event.package
        names = [p.name for p in pkg.dependency_path()]
        manifest = event.manifest or pkg.manifest
        base = _CsvRecord(
            ecosystem=pkg.ecosystem,
            manifest_path=manifest.display_path,
            package_name=pkg.name,
            package_version=pkg.version,
            violation_reason=event.message,
            introduced_by=names[-1] if names else "",
            path_to_root=" -> ".join(names),
        )

        insights = pkg.insights or PackageInsights()
        if not insights.vulnerabilities:
            return [base]

        records = []
        for vuln in insights.vulnerabilities:
            cve_id = next((alias for alias in vuln.aliases if alias.startswith("CVE-")), "")
            risk = next((s.risk for s in vuln.severities if s.type in _CVSS_TYPES), "")
            records.append(
                replace(base, osv_id=vuln.id, cve_id=cve_id, vuln_summary=vuln.summary, vuln_severity=risk)
            )
        return records