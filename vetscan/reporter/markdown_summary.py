"""Markdown summary of a scan, suited to pull request comments."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote_plus

from vetscan.reporter.base import AnalyzerEvent, CheckType, PackageManifest, Reporter
from vetscan.reporter.json_report import JsonReportGenerator, JsonReportingConfig
from vetscan.reporter.markdown import Emoji, MarkdownBuilder

logger = logging.getLogger(__name__)

MARKDOWN_SUMMARY_REPORT_TITLE = "vet Summary Report"

_POLICY_CHECKS = (
    (CheckType.VULNERABILITY, "Vulnerability"),
    (CheckType.MALWARE, "Malware"),
    (CheckType.LICENSE, "License"),
    (CheckType.POPULARITY, "Popularity"),
    (CheckType.MAINTENANCE, "Maintenance"),
    (CheckType.SECURITY_SCORECARD, "Security Posture"),
)

_FOUND_ON = {"manifest": "manifest", "package": "package"}


def package_external_reference_url(ecosystem: str, name: str, version: str) -> str:
    """URL of a public page describing the package version."""
    eco = ecosystem.upper()
    if eco == "GO":
        version = f"v{version}"
    if eco == "RUBYGEMS":
        return f"https://rubygems.org/gems/{quote_plus(name)}/versions/{quote_plus(version)}"
    return f"https://deps.dev/{quote_plus(ecosystem.lower())}/{quote_plus(name)}/{quote_plus(version)}"


@dataclass
class MarkdownSummaryReporterConfig:
    path: str
    report_title: str = ""
    threat_reference_url: str = ""


@dataclass
class _InternalModel:
    violations: dict[str, list[dict[str, Any]]]
    packages: list[dict[str, Any]]
    manifests: dict[str, dict[str, Any]]
    threats: dict[str, list[dict[str, Any]]]


def _advice_summary(advice: dict[str, Any]) -> str | None:
    kind = advice.get("type")
    if kind == "UpgradePackage":
        return f"Upgrade to {advice.get('targetPackageName', '')}@{advice.get('targetPackageVersion', '')}"
    if kind == "AlternatePopularPackage":
        return "Use an alternative package that is popular"
    if kind == "AlternateSecurePackage":
        return "Use an alternative package that has better security posture"
    return None


class MarkdownSummaryReporter(Reporter):
    """Renders the consolidated JSON report as a markdown summary."""

    def __init__(self, config: MarkdownSummaryReporterConfig) -> None:
        if not config.report_title:
            config.report_title = MARKDOWN_SUMMARY_REPORT_TITLE
        self.config = config
        self._json_reporter = JsonReportGenerator(JsonReportingConfig(path=""))

    def name(self) -> str:
        return "Markdown Summary Reporter"

    def add_manifest(self, manifest: PackageManifest) -> None:
        self._json_reporter.add_manifest(manifest)

    def add_analyzer_event(self, event: AnalyzerEvent) -> None:
        self._json_reporter.add_analyzer_event(event)

    def add_policy_event(self, event: Any) -> None:
        self._json_reporter.add_policy_event(event)

    def finish(self) -> None:
        logger.debug("Generating markdown summary report to %s", self.config.path)
        content = self.build_markdown(self._json_reporter.build_report())
        fd = os.open(self.config.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)

    def build_markdown(self, report: dict[str, Any]) -> str:
        """Render a JSON report dictionary as markdown."""
        model = self._internal_model(report)
        builder = MarkdownBuilder()
        builder.add_header(1, self.config.report_title)
        builder.add_paragraph("This report is generated by `vet`")
        self._add_policy_checks(builder, model)
        self._add_threats(builder, model)
        self._add_changed_packages(builder, model)
        self._add_violations(builder, model)
        return builder.build()

    @staticmethod
    def _internal_model(report: dict[str, Any]) -> _InternalModel:
        model = _InternalModel(violations={}, packages=[], manifests={}, threats={})

        def add_threats(threats: list[dict[str, Any]]) -> None:
            for threat in threats:
                model.threats.setdefault(threat.get("id", ""), []).append(threat)

        for manifest in report.get("manifests", []):
            model.manifests[manifest.get("id", "")] = manifest
            add_threats(manifest.get("threats", []))

        for pkg in report.get("packages", []):
            model.packages.append(pkg)
            for violation in pkg.get("violations", []):
                model.violations.setdefault(violation.get("checkType", ""), []).append(violation)
            add_threats(pkg.get("threats", []))
        return model

    @staticmethod
    def _add_policy_checks(builder: MarkdownBuilder, model: _InternalModel) -> None:
        builder.add_header(2, "Policy Checks")
        for check_type, label in _POLICY_CHECKS:
            icon = Emoji.CROSS_MARK if check_type.value in model.violations else Emoji.WHITE_CHECK_MARK
            builder.add_bullet_point(f"{icon} {label}")
        icon = Emoji.CROSS_MARK if model.threats else Emoji.WHITE_CHECK_MARK
        builder.add_bullet_point(f"{icon} Threats")

    def _add_threats(self, builder: MarkdownBuilder, model: _InternalModel) -> None:
        if not model.threats:
            return
        builder.add_header(2, "Threats")
        for threat_id, threats in model.threats.items():
            builder.add_header(3, threat_id)
            for threat in threats:
                found_on = _FOUND_ON.get(threat.get("subjectType", ""))
                if found_on is None:
                    continue
                text = (
                    f"{Emoji.WARNING} Found in {found_on} `{threat.get('subject', '')}`, "
                    f"{threat.get('message', '')}."
                )
                if self.config.threat_reference_url:
                    text += f" Refer to [this]({self.config.threat_reference_url}) for more details"
                builder.add_bullet_point(text)

    @staticmethod
    def _add_changed_packages(builder: MarkdownBuilder, model: _InternalModel) -> None:
        if not model.packages:
            return
        section = builder.start_collapsible_section("Changed Packages")
        section.builder.add_header(2, "Changed Packages")
        for pkg in model.packages:
            spec = pkg.get("package")
            if spec is None:
                logger.warning("package model is unexpectedly missing")
                continue
            status = Emoji.WARNING if pkg.get("violations") else Emoji.WHITE_CHECK_MARK
            section.builder.add_bullet_point(
                f"{status} [`{spec.get('ecosystem', '')}`] `{spec.get('name', '')}@{spec.get('version', '')}`"
            )
        builder.add_collapsible_section(section)

    @staticmethod
    def _add_violations(builder: MarkdownBuilder, model: _InternalModel) -> None:
        section = builder.start_collapsible_section("Policy Violations")
        section.builder.add_header(2, "Packages Violating Policy")
        has_violations = False

        for pkg in model.packages:
            violations = pkg.get("violations", [])
            spec = pkg.get("package")
            if not violations or spec is None:
                continue
            has_violations = True

            ecosystem, name, version = spec.get("ecosystem", ""), spec.get("name", ""), spec.get("version", "")
            link = f"[{Emoji.LINK}]({package_external_reference_url(ecosystem, name, version)})"
            section.builder.add_header(3, f"[{ecosystem}] `{name}@{version}` {link}")

            for manifest_id in pkg.get("manifests", []):
                manifest = model.manifests.get(manifest_id)
                if manifest is not None:
                    section.builder.add_bullet_point(
                        f"{Emoji.ARROW_RIGHT} Found in manifest `{manifest.get('path', '')}`"
                    )

            for violation in violations:
                section.builder.add_bullet_point(
                    f"{Emoji.WARNING} {violation.get('filter', {}).get('summary', '')}"
                )

            for advice in pkg.get("advices", []):
                summary = _advice_summary(advice)
                if summary is not None:
                    section.builder.add_bullet_point(f":zap: {summary}")

        if has_violations:
            builder.add_collapsible_section(section)