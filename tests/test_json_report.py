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
    ReportThreat,
    SourceType,
    ThreatSubjectType,
    Vulnerability,
    VulnerabilitySeverity,
)
from vetscan.reporter.json_report import JsonReportGenerator, JsonReportingConfig


def _manifest(source_type, display_path, packages=None):
    manifest = PackageManifest(
        source=PackageManifestSource(
            type=source_type, namespace="/namespace/1", path="sample-path", display_path=display_path
        ),
        path="/real/path",
        ecosystem="Go",
        packages=packages if packages is not None else [Package(name="golib1", version="0.1.2")],
    )
    for pkg in manifest.packages:
        pkg.manifest = manifest
    return manifest


def _run(tmp_path, manifests, events=(), **kwargs):
    path = tmp_path / "report.json"
    reporter = JsonReportGenerator(JsonReportingConfig(path=str(path)), **kwargs)
    for manifest in manifests:
        reporter.add_manifest(manifest)
    for event in events:
        reporter.add_analyzer_event(event)
    reporter.finish()
    return json.loads(path.read_text(encoding="utf-8"))


def _filter_event(pkg, name="f1"):
    return AnalyzerEvent(
        type=EventType.FILTER_EXPRESSION_MATCHED,
        package=pkg,
        manifest=pkg.manifest,
        filter=Filter(name=name, summary="summary", value="true", check_type=CheckType.VULNERABILITY),
        message="violation",
    )


def test_sanity_of_local_manifest(tmp_path):
    report = _run(tmp_path, [_manifest(SourceType.LOCAL, "/tmp/sample/display/path/does/not/matter")])
    assert len(report["manifests"]) == 1
    assert report["manifests"][0]["path"] == "sample-path"
    assert report["manifests"][0]["namespace"] == "/namespace/1"
    assert report["manifests"][0]["displayPath"] == "/namespace/1/sample-path"
    assert report["manifests"][0]["sourceType"] == SourceType.LOCAL.value
    assert len(report["packages"]) == 1
    assert report["packages"][0]["package"]["name"] == "golib1"
    assert report["packages"][0]["package"]["version"] == "0.1.2"


def test_github_manifest_display_path(tmp_path):
    report = _run(tmp_path, [_manifest(SourceType.GIT_REPOSITORY, "/tmp/sample/display/path")])
    assert report["manifests"][0]["displayPath"] == "/tmp/sample/display/path"


def test_package_lists_manifest_once(tmp_path):
    manifest = _manifest(SourceType.LOCAL, "")
    reporter = JsonReportGenerator(JsonReportingConfig(path=str(tmp_path / "r.json")))
    reporter.add_manifest(manifest)
    reporter.add_manifest(manifest)
    report = reporter.build_report()
    assert report["packages"][0]["manifests"] == [manifest.id()]
    assert report["meta"]["toolName"] == "vet"


def test_filter_violation_deduplicated(tmp_path):
    manifest = _manifest(SourceType.LOCAL, "")
    pkg = manifest.packages[0]
    report = _run(tmp_path, [manifest], [_filter_event(pkg), _filter_event(pkg), _filter_event(pkg, "f2")])
    names = [v["filter"]["name"] for v in report["packages"][0]["violations"]]
    assert names == ["f1", "f2"]
    assert report["packages"][0]["violations"][0]["checkType"] == "CheckTypeVulnerability"


def test_remediation_advice_added(tmp_path):
    manifest = _manifest(SourceType.LOCAL, "")
    pkg = manifest.packages[0]

    def advisor(package, violation):
        return {"type": "AlternatePopularPackage", "for": violation["filter"]["name"]}

    report = _run(tmp_path, [manifest], [_filter_event(pkg)], remediations=advisor)
    assert report["packages"][0]["advices"] == [{"type": "AlternatePopularPackage", "for": "f1"}]


def test_threat_events_attach_to_subject(tmp_path):
    manifest = _manifest(SourceType.LOCAL, "")
    pkg = manifest.packages[0]
    events = [
        AnalyzerEvent(
            type=EventType.LOCKFILE_POISONING_SIGNAL,
            manifest=manifest,
            threat=ReportThreat(id="LockfilePoisoning", subject="x", subject_type=ThreatSubjectType.MANIFEST,
                                message="bad url"),
        ),
        AnalyzerEvent(
            type=EventType.LOCKFILE_POISONING_SIGNAL,
            package=pkg,
            threat=ReportThreat(id="LockfilePoisoning", subject="golib1", subject_type=ThreatSubjectType.PACKAGE),
        ),
        AnalyzerEvent(
            type=EventType.LOCKFILE_POISONING_SIGNAL,
            threat=ReportThreat(id="ignored", subject_type=ThreatSubjectType.PACKAGE),
        ),
    ]
    report = _run(tmp_path, [manifest], events)
    assert report["manifests"][0]["threats"][0]["message"] == "bad url"
    assert [t["subject"] for t in report["packages"][0]["threats"]] == ["golib1"]


def test_insights_mapped(tmp_path):
    insights = PackageInsights(
        vulnerabilities=[
            Vulnerability(
                id="GHSA-1",
                summary="bad",
                aliases=["CVE-2020-1"],
                severities=[VulnerabilitySeverity(type="CVSSV3", risk="HIGH", score="7.5")],
            )
        ],
        licenses=["MIT"],
        projects=[ProjectInfo(name="org/lib", stars=12, link="https://example.com/org/lib")],
        package_current_version="2.0.0",
    )
    manifest = _manifest(SourceType.LOCAL, "", [Package(name="lib", version="1.0.0", insights=insights)])
    pkg = _run(tmp_path, [manifest])["packages"][0]
    assert pkg["vulnerabilities"] == [
        {"id": "GHSA-1", "title": "bad", "aliases": ["CVE-2020-1"],
         "severities": [{"type": "CVSSV3", "risk": "HIGH", "score": "7.5"}]}
    ]
    assert pkg["licenses"] == [{"id": "MIT"}]
    assert pkg["projects"] == [{"name": "org/lib", "stars": 12, "url": "https://example.com/org/lib"}]
    assert pkg["advices"] == [{"type": "UpgradePackage", "targetAlternatePackageVersion": "2.0.0"}]


@pytest.mark.parametrize(
    "repository, expected",
    [
        ("example.com/gems", [{"name": "gems", "url": "https://example.com/gems"}]),
        ("https://example.com/gems", [{"name": "/example.com/gems", "url": "https://example.com/gems"}]),
        (None, []),
    ],
)
def test_project_from_scorecard(tmp_path, repository, expected):
    insights = PackageInsights(scorecard_repository_name=repository)
    manifest = _manifest(SourceType.LOCAL, "", [Package(name="mail", version="2.8.1", insights=insights)])
    assert _run(tmp_path, [manifest])["packages"][0]["projects"] == expected
    assert _run(tmp_path, [manifest])["packages"][0]["advices"] == []