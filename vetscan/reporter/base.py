"""Data model shared by reporters and the reporter contract itself."""

from __future__ import annotations

import hashlib
import posixpath
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

_VERSION = re.compile(r"^\s*[vV]?(\d+)(?:\.(\d+))?(?:\.(\d+))?")


def _major(version: str) -> int | None:
    match = _VERSION.match(version or "")
    return int(match.group(1)) if match else None


def is_major_drift(version: str, latest: str) -> bool:
    """True when ``latest`` is ahead of ``version`` by at least one major version."""
    current, newest = _major(version), _major(latest)
    return current is not None and newest is not None and newest > current


class SourceType(str, Enum):
    UNKNOWN = ""
    LOCAL = "local"
    GIT_REPOSITORY = "git_repository"
    PURL = "purl"


@dataclass
class PackageManifestSource:
    """Where a manifest was read from."""

    type: SourceType = SourceType.UNKNOWN
    namespace: str = ""
    path: str = ""
    display_path: str = ""


@dataclass
class VulnerabilitySeverity:
    type: str = ""
    risk: str = ""
    score: str = ""


@dataclass
class Vulnerability:
    id: str = ""
    summary: str = ""
    aliases: list[str] = field(default_factory=list)
    severities: list[VulnerabilitySeverity] = field(default_factory=list)


@dataclass
class ProjectInfo:
    name: str = ""
    display_name: str = ""
    type: str = ""
    link: str = ""
    stars: int = 0
    forks: int = 0
    issues: int = 0


@dataclass
class PackageInsights:
    """Metadata gathered about one package version.

    ``dependencies`` holds packages reported as dependencies; their ``depth``
    is the distance from the package these insights describe.
    """

    vulnerabilities: list[Vulnerability] = field(default_factory=list)
    licenses: list[str] = field(default_factory=list)
    projects: list[ProjectInfo] = field(default_factory=list)
    package_current_version: str | None = None
    dependencies: list[Package] = field(default_factory=list)
    scorecard_repository_name: str | None = None


@dataclass(eq=False)
class Package:
    """A package version found in a manifest."""

    name: str = ""
    version: str = ""
    ecosystem: str = ""
    manifest: PackageManifest | None = field(default=None, repr=False)
    parent: Package | None = field(default=None, repr=False)
    depth: int = 0
    insights: PackageInsights | None = None

    def id(self) -> str:
        """Identity of the package version, shared across manifests."""
        ecosystem = self.ecosystem or (self.manifest.ecosystem if self.manifest else "")
        return f"{ecosystem}/{self.name}/{self.version}"

    @property
    def dependency_graph(self) -> DependencyGraph | None:
        """The manifest's dependency graph, when one has been built."""
        if self.manifest is None:
            return None
        graph = self.manifest.dependency_graph
        if graph is None or not graph.present:
            return None
        return graph

    def dependency_path(self) -> list[Package]:
        """Packages from the direct parent up to the root that pulled this one in."""
        graph = self.dependency_graph
        if graph is not None:
            path = graph.path_to_root(self)
            if path:
                return path[1:]
        path = []
        seen = {id(self)}
        parent = self.parent
        while parent is not None and id(parent) not in seen:
            seen.add(id(parent))
            path.append(parent)
            parent = parent.parent
        return path


@dataclass(eq=False)
class _GraphNode:
    data: Package
    root: bool = False
    children: list[Package] = field(default_factory=list)


class DependencyGraph:
    """Directed graph of package dependencies within one manifest."""

    def __init__(self) -> None:
        self._nodes: dict[str, _GraphNode] = {}
        self.present = False

    def add_node(self, pkg: Package) -> _GraphNode:
        """Add a node for the package, returning the existing one if present."""
        return self._nodes.setdefault(pkg.id(), _GraphNode(pkg))

    def add_dependency(self, from_pkg: Package, to_pkg: Package) -> None:
        """Record that ``from_pkg`` depends on ``to_pkg``."""
        node = self.add_node(from_pkg)
        self.add_node(to_pkg)
        if all(child.id() != to_pkg.id() for child in node.children):
            node.children.append(to_pkg)

    def nodes(self) -> list[_GraphNode]:
        return list(self._nodes.values())

    def dependents(self, pkg: Package) -> list[Package]:
        """Packages that directly depend on ``pkg``."""
        key = pkg.id()
        return [n.data for n in self._nodes.values() if any(c.id() == key for c in n.children)]

    def is_root(self, pkg: Package) -> bool:
        node = self._nodes.get(pkg.id())
        return node is not None and node.root

    def path_to_root(self, pkg: Package) -> list[Package]:
        """Path from ``pkg`` through its dependents up to a root; empty if unknown."""
        if pkg.id() not in self._nodes:
            return []
        path = [pkg]
        seen = {pkg.id()}
        current = pkg
        while not self.is_root(current):
            parents = [p for p in self.dependents(current) if p.id() not in seen]
            if not parents:
                break
            current = parents[0]
            seen.add(current.id())
            path.append(current)
        return path


@dataclass(eq=False)
class PackageManifest:
    """A manifest or lockfile and the packages it declares."""

    source: PackageManifestSource = field(default_factory=PackageManifestSource)
    path: str = ""
    ecosystem: str = ""
    packages: list[Package] = field(default_factory=list, repr=False)
    dependency_graph: DependencyGraph | None = field(default=None, repr=False)

    @property
    def display_path(self) -> str:
        """Path shown to users for this manifest."""
        if self.source.type is SourceType.LOCAL:
            if self.source.namespace:
                return posixpath.join(self.source.namespace, self.source.path)
            return self.source.path
        return self.source.display_path or self.source.path or self.path

    def id(self) -> str:
        key = "|".join(
            (self.source.type.value, self.source.namespace, self.source.path, self.path, self.ecosystem)
        )
        return hashlib.sha256(key.encode()).hexdigest()[:16]

    def add_package(self, pkg: Package) -> None:
        """Attach a package to this manifest and its dependency graph."""
        if pkg.manifest is None:
            pkg.manifest = self
        self.packages.append(pkg)
        if self.dependency_graph is not None:
            self.dependency_graph.add_node(pkg)


class CheckType(str, Enum):
    UNKNOWN = "CheckTypeUnknown"
    VULNERABILITY = "CheckTypeVulnerability"
    MALWARE = "CheckTypeMalware"
    LICENSE = "CheckTypeLicense"
    POPULARITY = "CheckTypePopularity"
    MAINTENANCE = "CheckTypeMaintenance"
    SECURITY_SCORECARD = "CheckTypeSecurityScorecard"


@dataclass
class Filter:
    """A named policy expression."""

    name: str = ""
    summary: str = ""
    value: str = ""
    check_type: CheckType = CheckType.UNKNOWN


class EventType(str, Enum):
    FILTER_EXPRESSION_MATCHED = "filter_expression_matched"
    FAIL_ON_ERROR = "fail_on_error"
    LOCKFILE_POISONING_SIGNAL = "lockfile_poisoning_signal"


class ThreatSubjectType(str, Enum):
    UNKNOWN = ""
    MANIFEST = "manifest"
    PACKAGE = "package"


@dataclass
class ReportThreat:
    id: str = ""
    subject: str = ""
    subject_type: ThreatSubjectType = ThreatSubjectType.UNKNOWN
    message: str = ""


@dataclass(eq=False)
class AnalyzerEvent:
    """Something an analyzer found while examining a manifest."""

    type: EventType = EventType.FILTER_EXPRESSION_MATCHED
    source: str = ""
    message: Any = None
    err: Exception | None = None
    manifest: PackageManifest | None = field(default=None, repr=False)
    package: Package | None = None
    filter: Filter | None = None
    threat: ReportThreat | None = None

    def is_filter_match(self) -> bool:
        return self.type is EventType.FILTER_EXPRESSION_MATCHED

    def is_lockfile_poisoning_signal(self) -> bool:
        return self.type is EventType.LOCKFILE_POISONING_SIGNAL

    def is_fail_on_error(self) -> bool:
        return self.type is EventType.FAIL_ON_ERROR


class Reporter(ABC):
    """Receives scan data and produces a report when finished."""

    @abstractmethod
    def name(self) -> str:
        """Human readable name of the reporter."""

    @abstractmethod
    def add_manifest(self, manifest: PackageManifest) -> None:
        """Feed a scanned manifest."""

    @abstractmethod
    def add_analyzer_event(self, event: AnalyzerEvent) -> None:
        """Feed an event raised by an analyzer."""

    def add_policy_event(self, event: Any) -> None:
        """Keep a policy event; reporters that render them read ``policy_events``."""
        self.__dict__.setdefault("_policy_events", []).append(event)

    @property
    def policy_events(self) -> tuple[Any, ...]:
        """Policy events received so far, in order."""
        return tuple(self.__dict__.get("_policy_events", ()))

    @abstractmethod
    def finish(self) -> None:
        """Finalise the report, e.g. write it to a file."""