"""Actionable console summary of scan findings with remediation advice."""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass, field
from typing import Any, Sequence, TextIO

from vetscan.reporter.base import (
    AnalyzerEvent,
    Package,
    PackageInsights,
    PackageManifest,
    Reporter,
    is_major_drift,
)

SUMMARY_LIST_PREPEND_TEXT = "  ** "

WEIGHT_CRITICAL_VULN = 10
WEIGHT_HIGH_VULN = 8
WEIGHT_MEDIUM_VULN = 2
WEIGHT_LOW_VULN = 1
WEIGHT_UNPOPULAR = 1
WEIGHT_MAJOR_DRIFT = 2

MIN_STARS_FOR_POPULARITY = 10

TAG_VULN = "vulnerability"
TAG_UNPOPULAR = "low popularity"
TAG_DRIFT = "drift"
TAG_MALWARE = "malware"

SUMMARY_REPORT_MAX_UPGRADE_ADVICE = 5
MAX_REMEDIATES_SAMPLE = 5
WRAP_WIDTH = 120

_CVSS_TYPES = ("CVSSV2", "CVSSV3")
_RISK_WEIGHTS = {
    "CRITICAL": WEIGHT_CRITICAL_VULN,
    "HIGH": WEIGHT_HIGH_VULN,
    "MEDIUM": WEIGHT_MEDIUM_VULN,
    "LOW": WEIGHT_LOW_VULN,
}
_RISK_ORDER = ("CRITICAL", "HIGH", "MEDIUM", "LOW")

_TABLE_HEADER = ("Ecosystem", "Package", "Latest", "Impact Score", "Vuln Risk")

_ANSI = re.compile(r"\x1b\[[0-9;]*m")
_VERSION = re.compile(r"^\s*[vV]?(\d+)(?:\.(\d+))?(?:\.(\d+))?")

_BOLD, _FAINT = "1", "2"
_FG_HI_RED, _FG_HI_YELLOW = "91", "93"
_BG_RED, _BG_GREEN, _BG_YELLOW, _BG_BLUE, _BG_MAGENTA, _BG_WHITE = "41", "42", "43", "44", "45", "47"
_BG_HI_RED = "101"

_RISK_LABELS = {
    "CRITICAL": (" Critical ", _BG_HI_RED),
    "HIGH": (" High ", _BG_RED),
    "MEDIUM": (" Medium ", _BG_YELLOW),
    "LOW": (" Low ", _BG_BLUE),
}


def _version_key(version: str) -> tuple[int, int, int] | None:
    match = _VERSION.match(version or "")
    if match is None:
        return None
    return tuple(int(part or 0) for part in match.groups())  # type: ignore[return-value]


def _same_version(version: str, latest: str) -> bool:
    current, newest = _version_key(version), _version_key(latest)
    if current is None or newest is None:
        return version.strip() == latest.strip()
    return current == newest


def _visible_len(text: str) -> int:
    return len(_ANSI.sub("", text))


def _render_table(header: Sequence[str], groups: list[list[Sequence[str]]]) -> str:
    rows = [[str(c) for c in row] for group in groups for row in group]
    widths = [max(_visible_len(cell) for cell in column) for column in zip(header, *rows)]

    def rule(left: str, middle: str, right: str) -> str:
        return left + middle.join("─" * (w + 2) for w in widths) + right

    def line(cells: Sequence[str]) -> str:
        padded = (str(c) + " " * (w - _visible_len(str(c))) for c, w in zip(cells, widths))
        return "│ " + " │ ".join(padded) + " │"

    out = [rule("┌", "┬", "┐"), line(header), rule("├", "┼", "┤")]
    for index, group in enumerate(groups):
        if index:
            out.append(rule("├", "┼", "┤"))
        out.extend(line(row) for row in group)
    out.append(rule("└", "┴", "┘"))
    return "\n".join(out) + "\n"


@dataclass
class SummaryReporterConfig:
    """Options for the summary; ``max_advice`` of 0 means the default of 5.

    ``exempted_count`` is the number of packages exempted by exception rules.
    """

    max_advice: int = 0
    group_by_direct_dependency: bool = False
    exempted_count: int = 0


@dataclass(eq=False)
class RemediationData:
    """A package worth remediating, its impact score and reasons.

    When grouped by direct dependency, ``remediates`` lists the packages
    fixed by upgrading ``pkg``.
    """

    pkg: Package
    score: int = 0
    tags: list[str] = field(default_factory=list)
    remediates: list[RemediationData] = field(default_factory=list)


@dataclass
class SummaryCounts:
    manifests: int = 0
    packages: int = 0
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    unpopular: int = 0
    drifts: int = 0


@dataclass(frozen=True)
class _Violation:
    ecosystem: str
    pkg_name: str
    message: str


class SummaryReporter(Reporter):
    """Scores packages by risk and prints the ones most worth upgrading."""

    def __init__(
        self,
        config: SummaryReporterConfig | None = None,
        stream: TextIO | None = None,
        use_color: bool = True,
    ) -> None:
        self.config = config or SummaryReporterConfig()
        if self.config.max_advice == 0:
            self.config.max_advice = SUMMARY_REPORT_MAX_UPGRADE_ADVICE
        self.summary = SummaryCounts()
        self._stream = stream
        self._color = use_color
        self._remediation_scores: dict[str, RemediationData] = {}
        self._vulnerability_info: dict[str, dict[str, list[str]]] = {}
        self.violations: dict[str, _Violation] = {}
        self.lockfile_poisoning: list[str] = []

    def name(self) -> str:
        return "Summary Report Generator"

    def add_manifest(self, manifest: PackageManifest) -> None:
        for pkg in manifest.packages:
            self._process_vulns(pkg)
            self._process_malware(pkg)
            self._process_popularity(pkg)
            self._process_version_drift(pkg)
            self.summary.packages += 1
        self.summary.manifests += 1

    def add_analyzer_event(self, event: AnalyzerEvent) -> None:
        if event.is_lockfile_poisoning_signal():
            self.lockfile_poisoning.append(str(event.message))
        if not event.is_filter_match():
            return
        pkg = event.package
        if pkg is None or pkg.manifest is None:
            return
        if pkg.id() in self.violations or not isinstance(event.message, str):
            return
        self.violations[pkg.id()] = _Violation(
            ecosystem=pkg.ecosystem, pkg_name=f"{pkg.name}@{pkg.version}", message=event.message
        )

    def add_policy_event(self, event: Any) -> None:
        pass

    def finish(self) -> None:
        out = self._stream or sys.stdout
        prefix = SUMMARY_LIST_PREPEND_TEXT

        def emit(text: str = "") -> None:
            print(text, file=out)

        emit(f"{prefix} {self._paint(' Summary of Findings ', _BG_BLUE)}")
        emit()
        emit(self._paint(prefix + self._vuln_summary_statement(), _FG_HI_RED))
        emit()
        emit(self._paint(prefix + self._popularity_statement(), _FG_HI_YELLOW))
        emit()
        emit(self._paint(prefix + self._drift_statement(), _FG_HI_YELLOW))
        emit()
        emit(self._paint(prefix + self._manifest_count_statement(), _FAINT))
        emit()

        self._render_remediation_advice(out)
        emit()

        if self.config.exempted_count > 0:
            emit(self._paint(prefix + self._exceptions_statement(), _FAINT))
            emit()

        if self.lockfile_poisoning:
            emit(f"{prefix} {self._paint(' Lockfile Poisoning Detected ', _BOLD)}")
            emit()
            for message in self.lockfile_poisoning:
                plain = prefix + message
                for start in range(0, len(plain), WRAP_WIDTH):
                    emit(self._paint(plain[start:start + WRAP_WIDTH], _BG_RED))
            emit()

        emit('Run with `vet --filter="..."` for custom filters to identify risky libraries')
        emit()

    def sorted_remediations(self) -> list[RemediationData]:
        """Remediations by descending score, ties broken by package name."""
        return sorted(self._remediation_scores.values(), key=lambda d: (-d.score, d.pkg.name))

    def sorted_remediations_grouped_by_direct_dependency(self) -> list[RemediationData]:
        """Remediations merged under the root package that pulls them in."""
        grouped: dict[str, RemediationData] = {}
        for value in self._remediation_scores.values():
            pkg = value.pkg
            graph = pkg.dependency_graph
            if graph is not None:
                path = graph.path_to_root(pkg)
                if len(path) > 1:
                    pkg = path[-1]

            group = grouped.setdefault(pkg.id(), RemediationData(pkg=pkg))
            group.score += value.score
            group.tags.extend(value.tags)
            if pkg.id() != value.pkg.id():
                group.remediates.append(value)

        for group in grouped.values():
            group.remediates.sort(key=lambda d: -d.score)
        return sorted(grouped.values(), key=lambda d: -d.score)

    def vulnerability_risk_text(self, pkg: Package) -> str:
        """Label of the highest vulnerability risk found for the package."""
        info = self._vulnerability_info.get(pkg.id())
        if info is None:
            return self._paint(" None ", _BG_GREEN)
        for risk in _RISK_ORDER:
            if info.get(risk):
                label, code = _RISK_LABELS[risk]
                return self._paint(label, code)
        return self._paint(" Unknown ", _BG_WHITE)

    def vulnerability_sample_text(self, pkg: Package) -> str:
        """First vulnerability id of the highest risk, with a count of the rest."""
        info = self._vulnerability_info.get(pkg.id())
        if info is None:
            return ""
        for risk in _RISK_ORDER:
            ids = info.get(risk)
            if ids:
                return ids[0] if len(ids) == 1 else f"{ids[0]} + {len(ids) - 1}"
        return ""

    def update_version_advice(self, pkg: Package) -> str:
        """Version to upgrade to, "-" when current, "Not Available" when unknown."""
        insights = pkg.insights or PackageInsights()
        latest = insights.package_current_version or ""
        if not latest:
            return "Not Available"
        if _same_version(pkg.version, latest):
            return "-"
        return latest

    def path_to_package_root(self, pkg: Package) -> str:
        """Short description of how far the package is from its root dependency."""
        graph = pkg.dependency_graph
        if graph is None or graph.is_root(pkg):
            return ""
        path = graph.path_to_root(pkg)
        if not path:
            return ""
        root = path[-1]
        return f" ... [{len(path) - 1}] > {root.name}@{root.version}"

    def _paint(self, text: str, *codes: str) -> str:
        if not self._color or not text:
            return text
        return f"\x1b[{';'.join(codes)}m{text}\x1b[0m"

    def _process_version_drift(self, pkg: Package) -> None:
        if pkg.depth > 0:
            return
        insights = pkg.insights or PackageInsights()
        latest = insights.package_current_version or ""
        if not pkg.version.strip() or not latest.strip():
            return
        if is_major_drift(pkg.version, latest):
            self.summary.drifts += 1
            self._add_remediation_advice(pkg, WEIGHT_MAJOR_DRIFT, TAG_DRIFT)

    def _process_popularity(self, pkg: Package) -> None:
        if pkg.depth > 0:
            return
        insights = pkg.insights or PackageInsights()
        if not insights.projects:
            return
        project = insights.projects[0]
        if project.type.lower() == "github" and project.stars < MIN_STARS_FOR_POPULARITY:
            self.summary.unpopular += 1
            self._add_remediation_advice(pkg, WEIGHT_UNPOPULAR, TAG_UNPOPULAR)

    def _process_malware(self, pkg: Package) -> None:
        insights = pkg.insights or PackageInsights()
        for vuln in insights.vulnerabilities:
            # Malicious package advisories follow the MAL-YYYY-ID convention.
            if vuln.id.startswith("MAL-"):
                self.summary.critical += 1
                self._add_remediation_advice(pkg, WEIGHT_CRITICAL_VULN, TAG_MALWARE)

    def _process_vulns(self, pkg: Package) -> None:
        insights = pkg.insights or PackageInsights()
        for vuln in insights.vulnerabilities:
            for severity in vuln.severities:
                if severity.type not in _CVSS_TYPES:
                    continue
                risk = severity.risk
                self._vulnerability_info.setdefault(pkg.id(), {}).setdefault(risk, []).append(vuln.id)
                weight = _RISK_WEIGHTS.get(risk)
                if weight is None:
                    continue
                setattr(self.summary, risk.lower(), getattr(self.summary, risk.lower()) + 1)
                self._add_remediation_advice(pkg, weight, TAG_VULN)

    def _add_remediation_advice(self, pkg: Package, weight: int, tag: str) -> None:
        data = self._remediation_scores.setdefault(pkg.id(), RemediationData(pkg=pkg))
        data.score += weight
        if tag not in data.tags:
            data.tags.append(tag)

    def _render_remediation_advice(self, out: TextIO) -> None:
        if not self._remediation_scores:
            print(self._paint(" No risky libraries identified ", _BG_GREEN), file=out)
            return

        print(self._paint("Consider upgrading the following libraries for maximum impact:", _BOLD), file=out)
        print(file=out)

        if self.config.group_by_direct_dependency:
            ordered = self.sorted_remediations_grouped_by_direct_dependency()
        else:
            ordered = self.sorted_remediations()

        groups = [self._advice_rows(data) for data in ordered[: max(self.config.max_advice, 0)]]
        out.write(_render_table(_TABLE_HEADER, groups))

        if len(ordered) > SUMMARY_REPORT_MAX_UPGRADE_ADVICE:
            print(file=out)
            remaining = len(ordered) - SUMMARY_REPORT_MAX_UPGRADE_ADVICE
            print(
                self._paint(f"There are {remaining} more libraries that should be upgraded to reduce risk",
                            _FG_HI_YELLOW),
                file=out,
            )
            print(self._paint("Run vet with `--report-markdown=/path/to/report.md` for details", _BOLD), file=out)

    def _format_tags(self, tags: list[str]) -> str:
        return "".join(self._paint(f" {tag} ", _BG_MAGENTA) + " " for tag in tags)

    def _advice_rows(self, data: RemediationData) -> list[tuple[str, str, str, str, str]]:
        pkg = data.pkg
        rows = [(
            pkg.ecosystem,
            f"{pkg.name}@{pkg.version}",
            self.update_version_advice(pkg),
            str(data.score),
            self.vulnerability_risk_text(pkg),
        )]

        if data.remediates:
            unique_tags = list(dict.fromkeys(tag for rd in data.remediates for tag in rd.tags))
            rows.append(("", self._format_tags(unique_tags), "", "", self.vulnerability_sample_text(pkg)))
            sample = data.remediates[:MAX_REMEDIATES_SAMPLE]
            for rd in sample:
                risk = self.vulnerability_risk_text(rd.pkg)
                risk_sample = self.vulnerability_sample_text(rd.pkg)
                if risk_sample:
                    risk = f"{risk} ({risk_sample})"
                rows.append(("", self._paint(f"{rd.pkg.name}@{rd.pkg.version}", _FAINT), "", "", risk))
            if len(data.remediates) > len(sample):
                rows.append(("", f"... and {len(data.remediates) - len(sample)} more", "", "", ""))
        else:
            rows.append(("", self._format_tags(data.tags), "", "", self.vulnerability_sample_text(pkg)))
            path = self._paint(self.path_to_package_root(pkg), _FAINT)
            if path:
                rows.append(("", path, "", "", ""))
        return rows

    def _vuln_summary_statement(self) -> str:
        s = self.summary
        return (f"{s.critical} critical, {s.high} high and {s.medium + s.low} "
                "other vulnerabilities were identified")

    def _manifest_count_statement(self) -> str:
        return f"across {self.summary.packages} libraries in {self.summary.manifests} manifest(s)"

    def _popularity_statement(self) -> str:
        return f"{self.summary.unpopular} potentially unpopular library identified as direct dependency"

    def _drift_statement(self) -> str:
        return (f"{self.summary.drifts} libraries are out of date with major version drift "
                "in direct dependencies")

    def _exceptions_statement(self) -> str:
        return (f"{self.config.exempted_count} libraries are exempted from analysis "
                "through exception rules")