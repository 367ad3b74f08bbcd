"""SARIF report of policy violations for consumption by other tools."""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass
from typing import Any

from vetscan.reporter.base import AnalyzerEvent, CheckType, PackageInsights, PackageManifest, Reporter
from vetscan.reporter.links import vuln_id_to_link
from vetscan.reporter.markdown import MarkdownBuilder

logger = logging.getLogger(__name__)

SARIF_VERSION = "2.1.0"


@dataclass
class SarifToolMetadata:
    name: str
    version: str
    information_uri: str = ""


@dataclass
class SarifReporterConfig:
    tool: SarifToolMetadata
    path: str


class SarifReporter(Reporter):
    """Publishes policy violations as SARIF results, one rule per filter."""

    def __init__(self, config: SarifReporterConfig) -> None:
        self.config = config
        tool = config.tool
        driver: dict[str, Any] = {
            "name": tool.name,
            "version": tool.version,
            "properties": {"name": tool.name, "version": tool.version},
            "rules": [],
        }
        if tool.information_uri:
            driver["informationUri"] = tool.information_uri
        self._run: dict[str, Any] = {"tool": {"driver": driver}, "artifacts": [], "results": []}
        self._runs: list[dict[str, Any]] = []
        self._rules: set[str] = set()
        self._violations: set[str] = set()

    def name(self) -> str:
        return "sarif"

    def add_manifest(self, manifest: PackageManifest) -> None:
        self._run["artifacts"].append({"location": {"uri": manifest.display_path}})

    def add_analyzer_event(self, event: AnalyzerEvent) -> None:
        self._record_filter_match(event)

    def add_policy_event(self, event: Any) -> None:
        pass

    def finish(self) -> None:
        logger.info("Writing SARIF report to %s", self.config.path)
        self._runs.append(self._run)
        with open(self.config.path, "w", encoding="utf-8") as handle:
            json.dump(self.to_dict(), handle, indent=2)

    def to_dict(self) -> dict[str, Any]:
        """The SARIF document with every run added so far."""
        return {"version": SARIF_VERSION, "runs": copy.deepcopy(self._runs)}

    def _record_filter_match(self, event: AnalyzerEvent) -> None:
        if not event.is_filter_match():
            return
        pkg, flt = event.package, event.filter
        if pkg is None or pkg.manifest is None or flt is None:
            logger.warning("SARIF: Invalid event: missing package or manifest or filter")
            return

        if flt.name not in self._rules:
            self._run["tool"]["driver"]["rules"].append(
                {
                    "id": flt.name,
                    "shortDescription": {"text": flt.summary},
                    "properties": {"filter": flt.value, "type": flt.check_type.value},
                }
            )
            self._rules.add(flt.name)

        manifest = event.manifest or pkg.manifest
        display_path = manifest.display_path
        instance = f"{pkg.name}/{display_path}/{flt.name}"
        if instance in self._violations:
            return
        self._violations.add(instance)

        text = self._message_markdown(event)
        self._run["results"].append(
            {
                "ruleId": flt.name,
                "level": "error",
                "message": {"text": text, "markdown": text},
                "locations": [{"physicalLocation": {"artifactLocation": {"uri": display_path}}}],
            }
        )

    def _message_markdown(self, event: AnalyzerEvent) -> str:
        pkg, flt = event.package, event.filter
        md = MarkdownBuilder()
        md.add_header(2, "Policy Violation")
        md.add_paragraph(f"Package `{pkg.name}` violates policy `{flt.name}`.")

        insights = pkg.insights or PackageInsights()
        if flt.check_type is CheckType.VULNERABILITY:
            md.add_header(3, "Vulnerabilities")
            for vuln in insights.vulnerabilities:
                md.add_bullet_point(f"[{vuln.id}]({vuln_id_to_link(vuln.id)}): {vuln.summary}")
        elif flt.check_type is CheckType.LICENSE:
            md.add_header(3, "Licenses")
            for license_id in insights.licenses:
                md.add_bullet_point(license_id)
        elif flt.check_type is CheckType.POPULARITY and insights.projects:
            project = insights.projects[0]
            if project.type.lower() == "github":
                md.add_header(3, "GitHub Project")
                md.add_bullet_point(f"Name: {project.name}")
                md.add_bullet_point(f"Stars: {project.stars}")
                md.add_bullet_point(f"Forks: {project.forks}")
                md.add_bullet_point(f"Issues: {project.issues}")
                md.add_bullet_point(f"URL: {project.link}")
        return md.build()