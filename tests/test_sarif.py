import json

import pytest

from vetscan.reporter.base import (
    AnalyzerEvent,
    CheckType,
    EventType,
    Filter,
    Package,
    PackageInsights,
    PackageManifest,
    PackageManifestSource,
    ProjectInfo,
    Vulnerability,
)
from vetscan.reporter.sarif import SarifReporter, SarifReporterConfig, SarifToolMetadata

LICENSES = ["MIT", "GPL"]
SAMPLE_VULN_ID = "ghsa-123"
SAMPLE_VULN_SUMMARY = "sample-vuln-summary"
SAMPLE_PROJECT_NAME = "project-name"


def _manifest(display_path):
    return PackageManifest(source=PackageManifestSource(display_path=display_path))


def _events():
    return [
        AnalyzerEvent(
            type=EventType.FILTER_EXPRESSION_MATCHED,
            filter=Filter("sample-filter1", "sample-summary1", "sample-value1", CheckType.LICENSE),
            manifest=_manifest("displayPath1"),
            package=Package(
                name="name1",
                version="version1",
                ecosystem="ecosystem1",
                manifest=_manifest("displayPath1"),
                insights=PackageInsights(licenses=list(LICENSES)),
            ),
        ),
        AnalyzerEvent(
            type=EventType.FILTER_EXPRESSION_MATCHED,
            filter=Filter("sample-filter2", "sample-summary2", "sample-value2", CheckType.VULNERABILITY),
            manifest=_manifest("displayPath1"),
            package=Package(
                name="name2",
                version="version2",
                ecosystem="ecosystem2",
                manifest=_manifest("displayPath1"),
                insights=PackageInsights(
                    vulnerabilities=[Vulnerability(id=SAMPLE_VULN_ID, summary=SAMPLE_VULN_SUMMARY)]
                ),
            ),
        ),
        AnalyzerEvent(
            type=EventType.FILTER_EXPRESSION_MATCHED,
            filter=Filter("sample-filter3", "sample-summary3", "sample-value3", CheckType.POPULARITY),
            manifest=_manifest("displayPath2"),
            package=Package(
                name="name3",
                version="version3",
                ecosystem="ecosystem3",
                manifest=_manifest("displayPath3"),
                insights=PackageInsights(
                    projects=[ProjectInfo(name=SAMPLE_PROJECT_NAME, type="GITHUB", stars=100)]
                ),
            ),
        ),
    ]


@pytest.fixture
def reporter(tmp_path):
    return SarifReporter(
        SarifReporterConfig(
            tool=SarifToolMetadata(name="tool-name", version="tool-version"),
            path=str(tmp_path / "report.sarif"),
        )
    )


def _feed(reporter, events):
    for event in events:
        reporter.add_manifest(event.manifest)
        reporter.add_analyzer_event(event)


def test_sarif_report(reporter):
    events = _events()
    _feed(reporter, events)
    reporter.finish()

    assert reporter.name() == "sarif"
    report = reporter.to_dict()
    assert len(report["runs"]) == 1
    assert len(report["runs"][0]["artifacts"]) == len(events)
    assert len(report["runs"][0]["results"]) == len(events)


def test_sarif_report_markdown(reporter):
    _feed(reporter, _events())
    reporter.finish()

    results = reporter.to_dict()["runs"][0]["results"]
    assert "Licenses" in results[0]["message"]["markdown"]
    assert LICENSES[0] in results[0]["message"]["text"]
    assert SAMPLE_VULN_SUMMARY in results[1]["message"]["markdown"]
    assert SAMPLE_VULN_SUMMARY in results[1]["message"]["text"]
    assert "GitHub Project" in results[2]["message"]["markdown"]
    assert SAMPLE_PROJECT_NAME in results[2]["message"]["text"]


def test_vulnerability_message_links_advisory(reporter):
    _feed(reporter, _events()[1:2])
    reporter.finish()
    message = reporter.to_dict()["runs"][0]["results"][0]["message"]["markdown"]
    assert f"[{SAMPLE_VULN_ID}](https://github.com/advisories/{SAMPLE_VULN_ID})" in message


def test_file_written_with_tool_metadata(reporter):
    _feed(reporter, _events())
    reporter.finish()
    with open(reporter.config.path, encoding="utf-8") as handle:
        data = json.load(handle)
    driver = data["runs"][0]["tool"]["driver"]
    assert data["version"] == "2.1.0"
    assert driver["name"] == "tool-name"
    assert driver["version"] == "tool-version"
    assert [rule["id"] for rule in driver["rules"]] == ["sample-filter1", "sample-filter2", "sample-filter3"]
    assert driver["rules"][0]["properties"] == {"filter": "sample-value1", "type": "CheckTypeLicense"}


def test_duplicate_violation_recorded_once(reporter):
    event = _events()[0]
    reporter.add_analyzer_event(event)
    reporter.add_analyzer_event(event)
    reporter.finish()
    run = reporter.to_dict()["runs"][0]
    assert len(run["results"]) == 1
    assert len(run["tool"]["driver"]["rules"]) == 1
    assert run["results"][0]["level"] == "error"
    location = run["results"][0]["locations"][0]["physicalLocation"]["artifactLocation"]["uri"]
    assert location == "displayPath1"


def test_invalid_and_non_filter_events_ignored(reporter):
    reporter.add_analyzer_event(AnalyzerEvent(type=EventType.FILTER_EXPRESSION_MATCHED))
    event = _events()[0]
    event.type = EventType.LOCKFILE_POISONING_SIGNAL
    reporter.add_analyzer_event(event)
    reporter.finish()
    assert reporter.to_dict()["runs"][0]["results"] == []


def test_runs_empty_before_finish(reporter):
    _feed(reporter, _events())
    assert reporter.to_dict()["runs"] == []