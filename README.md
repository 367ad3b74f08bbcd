# vetscan

Building blocks for vetting the open source packages a project depends on.
A scan reads package manifests, lets enrichers attach metadata to each
package, runs analyzers over every manifest, and hands everything to
reporters. The reporters turn the findings into reports: vulnerabilities,
low popularity, major version drift, policy violations and lockfile threats.

The package uses only the standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

### `vetscan.scanner`

`PackageManifestScanner(config, readers, enrichers, analyzers, reporters)`
drives a scan. `start()` does the following:

- It enumerates manifests from every `PackageManifestReader`.
- It enriches each manifest's packages in a thread pool of
  `ScannerConfig.concurrent_analyzer` workers.
- It passes each manifest to every `Analyzer`.
- It forwards each `AnalyzerEvent` and manifest to the reporters.
- It calls `finish()` on the analyzers and then on the reporters.

When `ScannerConfig.transitive_analysis` is on, dependencies that an
enricher reports are added to the manifest and enriched in turn. This
continues up to `transitive_depth`. After enrichment, if the manifest has a
`DependencyGraph` that is not yet `present`, the scanner builds the graph:

- It adds an edge for each distance-1 dependency listed in
  `PackageInsights.dependencies`.
- It marks packages that have no dependents as roots.

If an analyzer raises an event of type `EventType.FAIL_ON_ERROR`, the
manifests after it are still enumerated but not scanned, and `start()`
raises `ScanFailedError`. Errors in enrichers, analyzers and reporters are
logged and do not stop the scan. Errors raised by readers propagate
unchanged.

To receive progress hooks, pass `ScannerCallbacks` to `with_callbacks()`.
The hooks are `on_start`, `on_enumerate_manifest`, `on_start_package`,
`on_done_manifest`, `on_stop`, and several others.

You implement these abstract classes:

- `PackageManifestReader`, with `name()` and `manifests()`. `manifests()`
  yields `PackageManifest` objects.
- `PackageMetaEnricher`, with `name()` and `enrich(pkg, cb)`. It calls
  `cb` for each dependency it discovers.
- `Analyzer`, with `name()`, `analyze(manifest, handler)` and an optional
  `finish()`.

### `vetscan.reporter.base`

This module holds the data model:

- `PackageManifest`, `PackageManifestSource` and `SourceType`.
- `Package` and `PackageInsights`.
- `Vulnerability`, `VulnerabilitySeverity` and `ProjectInfo`.
- `DependencyGraph`.
- `AnalyzerEvent`, `EventType`, `Filter` and `CheckType`.
- `ReportThreat` and `ThreatSubjectType`.

It also has `is_major_drift(version, latest)` and the abstract `Reporter`.
A `Reporter` has `name()`, `add_manifest()`, `add_analyzer_event()` and
`finish()`. It also has `add_policy_event()`, which by default collects
the event into `policy_events`.

### Reporters

| Class | Module | Output |
|---|---|---|
| `ConsoleReporter` | `vetscan.reporter.console` | A table per manifest of vulnerability counts, low popularity and version drift |
| `SummaryReporter` | `vetscan.reporter.summary` | A console summary with upgrade advice ranked by impact score |
| `CsvReporter` | `vetscan.reporter.csv_report` | A CSV of filter-matched packages, one row per vulnerability |
| `DotGraphReporter` | `vetscan.reporter.dot_graph` | A Graphviz `.dot` file per manifest, with matched packages filled red |
| `SarifReporter` | `vetscan.reporter.sarif` | A SARIF 2.1.0 document with one rule per filter and one result per violation |
| `JsonReportGenerator` | `vetscan.reporter.json_report` | A consolidated JSON report of manifests, packages, violations, advices and threats |
| `MarkdownSummaryReporter` | `vetscan.reporter.markdown_summary` | A markdown summary suited to pull request comments |

Notes on individual reporters:

- `SummaryReporter` takes a `SummaryReporterConfig`. Its fields are
  `max_advice`, `group_by_direct_dependency` and `exempted_count`. The
  constructor also takes an optional output `stream` and `use_color`.
- `JsonReportGenerator.build_report()` returns the report as a dictionary.
  The constructor takes an optional `remediations` callable that turns a
  package and a violation into an advice.
- `SarifReporter.to_dict()` returns the SARIF document.
- `MarkdownSummaryReporter.build_markdown(report)` renders a JSON report
  dictionary as markdown. `package_external_reference_url()` gives the
  link that is shown next to each package.

### Helpers

- `vetscan.reporter.markdown` has `MarkdownBuilder`. It supports headers,
  paragraphs, bullet and numbered points, code snippets and collapsible
  `<details>` sections (`CollapsibleSection`). It also has `Emoji`, which
  holds short codes.
- `vetscan.reporter.links.vuln_id_to_link()` gives an advisory link for a
  GHSA or CVE identifier. For any other identifier it gives `#`.
- `vetscan.schemamapper.insights_severity_to_model_severity()` maps an
  `InsightsVulnerabilitySeverity` onto a `ModelSeverity`.
- `vetscan.reporter.ci.Introspector` is an abstract contract for reading
  repository and git ref details from a CI job. `GitRefType` lists the
  kinds of ref.

### `vetscan.storage.graph`

This module provides a property graph stored as quads in SQLite:

- `new_in_memory_property_graph(config)` keeps the graph in memory.
- `new_property_graph(config)` stores it at `config.database_path`. With
  `open_existing` set it opens an existing file.

`link(Edge(...))` stores the edge and the properties of both nodes.
`query()` runs a path expression and returns a `QueryResult`, which has
`strings()` and `nodes()`. For example:

```python
from vetscan.storage.graph import Edge, LocalPropertyGraphConfig, Node, new_in_memory_property_graph

with new_in_memory_property_graph(LocalPropertyGraphConfig(name="demo")) as graph:
    alice = Node(id="alice", label="person", properties={"name": "Alice"})
    bob = Node(id="bob", label="person", properties={"name": "Bob"})
    graph.link(Edge(name="knows", from_node=alice, to_node=bob))
    print(graph.query('g.V("alice").Out("knows").All()').strings())  # ['bob']
```

The supported steps are `V`/`Vertex`, `Out`, `In`, `Both`, `Has`, `HasR`,
`Is`, `Tag`/`As`, `Back`, `Unique`, `Limit` and `Skip`. A query ends with
`All()` or `GetLimit(n)`; `g.Emit(value)` is also accepted. A query that
cannot be parsed or run raises `GraphQueryError`.

## Example

```python
from vetscan.reporter.base import Package, PackageManifest
from vetscan.reporter.csv_report import CsvReporter, CsvReportingConfig
from vetscan.scanner import PackageManifestReader, PackageManifestScanner, ScannerConfig


class StaticReader(PackageManifestReader):
    def __init__(self, manifests):
        self._manifests = manifests

    def name(self):
        return "static"

    def manifests(self):
        yield from self._manifests


manifest = PackageManifest(path="requirements.txt", ecosystem="PyPI")
manifest.add_package(Package(name="requests", version="2.31.0"))

scanner = PackageManifestScanner(
    ScannerConfig(),
    readers=[StaticReader([manifest])],
    enrichers=[],
    analyzers=[],
    reporters=[CsvReporter(CsvReportingConfig(path="report.csv"))],
)
scanner.start()
```

## What it does not do

There is no command-line program. The package does not include manifest
readers for lockfiles, directories or hosted repositories. It also has no
enrichers that fetch package metadata from a remote service, and no
analyzers such as filter-expression evaluation. Supply these by
implementing `PackageManifestReader`, `PackageMetaEnricher` and `Analyzer`.
There is no reporter that uploads results to a remote service.