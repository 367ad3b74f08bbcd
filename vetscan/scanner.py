"""Scanning pipeline: read manifests, enrich packages, analyze and report."""

from __future__ import annotations

import logging
import queue
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator

from vetscan.reporter.base import (
    AnalyzerEvent,
    DependencyGraph,
    Package,
    PackageManifest,
    Reporter,
)

logger = logging.getLogger(__name__)

ManifestCallback = Callable[[PackageManifest], None]
PackageCallback = Callable[[Package], None]
ErrorCallback = Callable[["ScanFailedError | None"], None]
NoArgCallback = Callable[[], None]

PackageDependencyCallback = Callable[[Package], None]
AnalyzerEventHandler = Callable[[AnalyzerEvent], None]


class ScanFailedError(Exception):
    """Raised when an analyzer asks the scan to fail."""


@dataclass
class ScannerConfig:
    """Options for a scan.

    ``transitive_depth`` bounds how deep discovered dependencies are followed
    when ``transitive_analysis`` is on; ``concurrent_analyzer`` is the number
    of packages enriched in parallel.
    """

    exclude_patterns: list[str] = field(default_factory=list)
    concurrent_analyzer: int = 5
    transitive_analysis: bool = False
    transitive_depth: int = 2
    experimental: bool = False


@dataclass
class ScannerCallbacks:
    """Optional hooks invoked as the scan progresses."""

    on_start_enumerate_manifest: NoArgCallback | None = None
    on_enumerate_manifest: ManifestCallback | None = None
    on_start: NoArgCallback | None = None
    on_start_manifest: ManifestCallback | None = None
    on_start_package: PackageCallback | None = None
    on_add_transitive_package: PackageCallback | None = None
    on_done_package: PackageCallback | None = None
    on_done_manifest: ManifestCallback | None = None
    before_finish: NoArgCallback | None = None
    on_stop: ErrorCallback | None = None


class PackageMetaEnricher(ABC):
    """Adds metadata to a package and reports dependencies it discovers."""

    @abstractmethod
    def name(self) -> str:
        """Human readable name of the enricher."""

    @abstractmethod
    def enrich(self, pkg: Package, cb: PackageDependencyCallback) -> None:
        """Enrich ``pkg``, calling ``cb`` for each dependency found."""


class PackageManifestReader(ABC):
    """Source of package manifests to scan."""

    @abstractmethod
    def name(self) -> str:
        """Human readable name of the reader."""

    @abstractmethod
    def manifests(self) -> Iterator[PackageManifest]:
        """Yield the manifests this reader finds."""


class Analyzer(ABC):
    """Examines a manifest and raises events about what it finds."""

    @abstractmethod
    def name(self) -> str:
        """Human readable name of the analyzer."""

    @abstractmethod
    def analyze(self, manifest: PackageManifest, handler: AnalyzerEventHandler) -> None:
        """Analyze ``manifest``, passing each event to ``handler``."""

    def finish(self) -> None:
        """Complete any pending work."""


class _WorkQueue:
    """Thread pool processing each distinct package once."""

    def __init__(
        self,
        workers: int,
        handler: Callable[[Package], None],
        on_add: PackageCallback,
        on_done: PackageCallback,
    ) -> None:
        self._workers = max(1, workers)
        self._handler = handler
        self._on_add = on_add
        self._on_done = on_done
        self._queue: queue.Queue[Package | None] = queue.Queue()
        self._seen: set[str] = set()
        self._lock = threading.Lock()
        self._threads: list[threading.Thread] = []

    def start(self) -> None:
        for _ in range(self._workers):
            thread = threading.Thread(target=self._run, daemon=True)
            thread.start()
            self._threads.append(thread)

    def add(self, item: Package) -> bool:
        """Queue ``item`` unless it was queued before; True if queued now."""
        with self._lock:
            key = item.id()
            if key in self._seen:
                return False
            self._seen.add(key)
        self._on_add(item)
        self._queue.put(item)
        return True

    def wait(self) -> None:
        self._queue.join()

    def stop(self) -> None:
        for _ in self._threads:
            self._queue.put(None)
        for thread in self._threads:
            thread.join()
        self._threads.clear()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is None:
                self._queue.task_done()
                return
            try:
                self._handler(item)
            except Exception:  # noqa: BLE001 - a failing item must not stop the pool
                logger.exception("Work queue handler failed for %s", item.id())
            finally:
                self._on_done(item)
                self._queue.task_done()


def _find_node_for_dependency(graph: DependencyGraph, name: str, version: str) -> Package | None:
    candidates = [node.data for node in graph.nodes() if node.data.name == name]
    for pkg in candidates:
        if pkg.version == version:
            return pkg
    return candidates[0] if candidates else None


class PackageManifestScanner:
    """Drives readers, enrichers, analyzers and reporters through a scan."""

    def __init__(
        self,
        config: ScannerConfig,
        readers: Iterable[PackageManifestReader],
        enrichers: Iterable[PackageMetaEnricher],
        analyzers: Iterable[Analyzer],
        reporters: Iterable[Reporter],
    ) -> None:
        self.config = config
        self.readers = list(readers)
        self.enrichers = list(enrichers)
        self.analyzers = list(analyzers)
        self.reporters = list(reporters)
        self.callbacks = ScannerCallbacks()
        self._error: ScanFailedError | None = None
        self._manifest_lock = threading.Lock()

    def with_callbacks(self, callbacks: ScannerCallbacks) -> None:
        """Use ``callbacks`` for progress notifications."""
        self.callbacks = callbacks

    def start(self) -> None:
        """Run the scan; raise ScanFailedError if an analyzer asked to fail.

        Manifests are scanned as they are enumerated. Once a failure is
        pending, remaining manifests are enumerated but not scanned.
        Errors from readers propagate unchanged.
        """
        self._dispatch(self.callbacks.on_start)
        self._dispatch(self.callbacks.on_start_enumerate_manifest)

        for reader in self.readers:
            for manifest in reader.manifests():
                self._dispatch(self.callbacks.on_enumerate_manifest, manifest)
                if self._error is None:
                    self._scan_manifest(manifest)

        self._dispatch(self.callbacks.before_finish)
        self._finish_analyzers()
        self._finish_reporting()

        self._dispatch(self.callbacks.on_stop, self._error)
        if self._error is not None:
            raise self._error

    @staticmethod
    def _dispatch(callback: Callable[..., None] | None, *args: object) -> None:
        if callback is not None:
            callback(*args)

    def _scan_manifest(self, manifest: PackageManifest) -> None:
        self._dispatch(self.callbacks.on_start_manifest, manifest)

        try:
            self._enrich_manifest(manifest)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to enrich %s manifest %s : %s", manifest.ecosystem, manifest.path, exc)

        self._analyze_manifest(manifest)

        for reporter in self.reporters:
            reporter.add_manifest(manifest)

        self._dispatch(self.callbacks.on_done_manifest, manifest)

    def _analyze_manifest(self, manifest: PackageManifest) -> None:
        for task in self.analyzers:
            try:
                task.analyze(manifest, self._handle_analyzer_event)
            except Exception as exc:  # noqa: BLE001
                logger.error("Analyzer %s failed: %s", task.name(), exc)

    def _handle_analyzer_event(self, event: AnalyzerEvent) -> None:
        for reporter in self.reporters:
            reporter.add_analyzer_event(event)

        if event.is_fail_on_error():
            error = ScanFailedError(f"{event.source} analyzer raised an event to fail with: {event.err}")
            error.__cause__ = event.err
            self._error = error

    def _finish_analyzers(self) -> None:
        for task in self.analyzers:
            try:
                task.finish()
            except Exception as exc:  # noqa: BLE001
                logger.error("Analyzer: %s failed with %s", task.name(), exc)

    def _finish_reporting(self) -> None:
        for reporter in self.reporters:
            try:
                reporter.finish()
            except Exception as exc:  # noqa: BLE001
                logger.error("Reporter: %s failed with %s", reporter.name(), exc)

    def _enrich_manifest(self, manifest: PackageManifest) -> None:
        if not self.enrichers:
            return

        try:
            work_queue = _WorkQueue(
                self.config.concurrent_analyzer,
                handler=lambda pkg: self._enrich_package(manifest, pkg, work_queue),
                on_add=lambda pkg: self._dispatch(self.callbacks.on_start_package, pkg),
                on_done=lambda pkg: self._dispatch(self.callbacks.on_done_package, pkg),
            )
            work_queue.start()
            for pkg in list(manifest.packages):
                work_queue.add(pkg)
            work_queue.wait()
            work_queue.stop()
        finally:
            self._finalise_dependency_graph(manifest)

    def _enrich_package(self, manifest: PackageManifest, pkg: Package, work_queue: _WorkQueue) -> None:
        def on_dependency(dep: Package) -> None:
            if not self.config.transitive_analysis:
                return
            if dep.depth >= self.config.transitive_depth:
                return
            logger.debug("Adding transitive dependency %s/%s to work queue", dep.name, dep.version)
            if work_queue.add(dep):
                with self._manifest_lock:
                    manifest.add_package(dep)
                self._dispatch(self.callbacks.on_add_transitive_package, dep)

        for enricher in self.enrichers:
            try:
                enricher.enrich(pkg, on_dependency)
            except Exception as exc:  # noqa: BLE001
                logger.error("Enricher %s failed with %s", enricher.name(), exc)

    @staticmethod
    def _finalise_dependency_graph(manifest: PackageManifest) -> None:
        """Build graph edges from insights and mark packages without dependents as roots."""
        graph = manifest.dependency_graph
        if graph is None or graph.present:
            return

        for pkg in list(manifest.packages):
            if pkg.insights is None:
                continue
            for dep in pkg.insights.dependencies:
                # Distance 0 is the package itself; above 1 is not a direct dependency.
                if dep.depth != 1:
                    continue
                target = _find_node_for_dependency(graph, dep.name, dep.version)
                if target is None:
                    logger.debug("Dependency %s/%s not found in dependency graph", dep.name, dep.version)
                    continue
                graph.add_dependency(pkg, target)

        for node in graph.nodes():
            if not graph.dependents(node.data):
                node.root = True

        graph.present = True