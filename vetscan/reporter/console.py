"""Minimal console table of risky packages per manifest."""

from __future__ import annotations

import sys
from typing import Any, Sequence, TextIO

from vetscan.reporter.base import AnalyzerEvent, Package, PackageInsights, PackageManifest, Reporter, is_major_drift

Row = tuple[str, str, str]

_HEADER: Row = ("Package", "Attribute", "Summary")


def _render_table(header: Sequence[str], groups: list[list[Row]]) -> str:
    rows = [row for group in groups for row in group]
    widths = [max(len(str(cell)) for cell in column) for column in zip(header, *rows)]

    def rule(left: str, middle: str, right: str) -> str:
        return left + middle.join("─" * (w + 2) for w in widths) + right

    def line(cells: Sequence[str]) -> str:
        return "│ " + " │ ".join(str(c).ljust(w) for c, w in zip(cells, widths)) + " │"

    out = [rule("┌", "┬", "┐"), line(header), rule("├", "┼", "┤")]
    for index, group in enumerate(groups):
        if index:
            out.append(rule("├", "┼", "┤"))
        out.extend(line(row) for row in group)
    out.append(rule("└", "┴", "┘"))
    return "\n".join(out) + "\n"


class ConsoleReporter(Reporter):
    """Prints vulnerability, popularity and drift hints for each manifest."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def name(self) -> str:
        return "Console Report Generator"

    def add_manifest(self, manifest: PackageManifest) -> None:
        out = self._stream or sys.stdout
        groups = [rows for rows in map(self.package_rows, manifest.packages) if rows]
        print(f"Manifest: {manifest.path}", file=out)
        out.write(_render_table(_HEADER, groups))

    def add_analyzer_event(self, event: AnalyzerEvent) -> None:
        pass

    def add_policy_event(self, event: Any) -> None:
        pass

    def finish(self) -> None:
        pass

    def package_rows(self, pkg: Package) -> list[Row]:
        """Table rows for a package, headed by its name; empty if nothing stands out."""
        insights = pkg.insights or PackageInsights()
        rows: list[Row] = []

        risks = [s.risk for v in insights.vulnerabilities for s in v.severities]
        critical, high = risks.count("CRITICAL"), risks.count("HIGH")
        if critical or high:
            rows.append(("", "Vulnerability", f"Critical:{critical} High:{high}"))

        if insights.projects:
            project = insights.projects[0]
            if 0 < project.stars < 10 and 0 < project.issues < 5:
                rows.append(("", "Low Popularity", f"Stars:{project.stars} Issues:{project.issues}"))

        latest = insights.package_current_version or ""
        if is_major_drift(pkg.version, latest):
            rows.append(("", "Version Drift", f"{pkg.version} > {latest}"))

        if rows:
            rows.insert(0, (f"{pkg.name}/{pkg.version}", "", ""))
        return rows