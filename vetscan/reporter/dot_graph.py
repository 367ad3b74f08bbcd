"""Graphviz dot rendering of manifest dependency graphs."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

from vetscan.reporter.base import AnalyzerEvent, DependencyGraph, EventType, Package, PackageManifest, Reporter

logger = logging.getLogger(__name__)

_FILE_NAME_CLEANER = re.compile(r"[^\w\d.\-]", re.ASCII)


class DotGraphReporter(Reporter):
    """Writes one dot file per manifest, highlighting filtered packages."""

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._matched: set[str] = set()

    def name(self) -> str:
        return "Graphviz Dot Graph"

    def add_manifest(self, manifest: PackageManifest) -> None:
        file_name = _FILE_NAME_CLEANER.sub("_", os.path.normpath(manifest.path or "."))
        file_path = self.directory / f"{file_name}.dot"
        try:
            file_path.write_text(self.render(manifest.dependency_graph), encoding="utf-8")
        except OSError as exc:
            logger.error("dotGraphReporter: failed to write to file %s: %s", file_path, exc)

    def add_analyzer_event(self, event: AnalyzerEvent) -> None:
        if event.type is not EventType.FILTER_EXPRESSION_MATCHED or event.package is None:
            return
        self._matched.add(event.package.id())

    def add_policy_event(self, event: Any) -> None:
        pass

    def finish(self) -> None:
        pass

    def render(self, graph: DependencyGraph | None) -> str:
        """Render a dependency graph as a dot digraph."""
        nodes = graph.nodes() if graph is not None else []
        lines = ["digraph {", "  rankdir=LR;", "  node [shape=box];", '  "root";']
        lines.extend(f'  "{_node_name(n.data)}" {self._style(n.data)};' for n in nodes)
        for node in nodes:
            name = _node_name(node.data)
            if node.root:
                lines.append(f'  "root" -> "{name}";')
            lines.extend(f'  "{name}" -> "{_node_name(child)}";' for child in node.children)
        lines.append("}")
        return "\n".join(lines) + "\n"

    def _style(self, pkg: Package) -> str:
        fill, font = ("red", "white") if pkg.id() in self._matched else ("white", "black")
        return f'[fillcolor="{fill}", fontcolor="{font}", style="filled"]'


def _node_name(pkg: Package) -> str:
    return f"{pkg.name}@{pkg.version}"