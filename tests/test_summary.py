import io

from vetscan.reporter.base import (
    AnalyzerEvent,
    DependencyGraph,
    EventType,
    Filter,
    Package,
    PackageInsights,
    PackageManifest,
    ProjectInfo,
    Vulnerability,
    VulnerabilitySeverity,
)
from vetscan.reporter.summary import (
    SUMMARY_REPORT_MAX_UPGRADE_ADVICE,
    WEIGHT_CRITICAL_VULN,
    WEIGHT_MAJOR_DRIFT,
    SummaryReporter,
    SummaryReporterConfig,
)


def make_reporter(**config):
    stream = io.StringIO()
    reporter = SummaryReporter(SummaryReporterConfig(**config), stream=stream, use_color=False)
    return reporter, stream


def vuln(vid, risk, sev_type="CVSSV3"):
    return Vulnerability(id=vid, severities=[VulnerabilitySeverity(type=sev_type, risk=risk)])


def manifest_with(*packages, graph=None):
    manifest = PackageManifest(path="package-lock.json", ecosystem="npm", dependency_graph=graph)
    for pkg in packages:
        manifest.add_package(pkg)
    return manifest


def test_default_max_advice():
    reporter, _ = make_reporter()
    assert reporter.config.max_advice == SUMMARY_REPORT_MAX_UPGRADE_ADVICE


def test_vulnerability_counts_ignore_non_cvss():
    pkg = Package(name="lib", version="1.0.0", ecosystem="npm", insights=PackageInsights(vulnerabilities=[
        vuln("GHSA-a", "CRITICAL"),
        vuln("GHSA-b", "HIGH", "CVSSV2"),
        vuln("GHSA-c", "MEDIUM"),
        vuln("GHSA-d", "LOW"),
        vuln("GHSA-e", "CRITICAL", "UNSPECIFIED"),
    ]))
    reporter, _ = make_reporter()
    reporter.add_manifest(manifest_with(pkg))
    s = reporter.summary
    assert (s.critical, s.high, s.medium, s.low) == (1, 1, 1, 1)
    assert (s.packages, s.manifests) == (1, 1)
    assert reporter.sorted_remediations()[0].tags == ["vulnerability"]


def test_malware_is_critical():
    pkg = Package(name="evil", version="0.0.1", ecosystem="npm",
                  insights=PackageInsights(vulnerabilities=[Vulnerability(id="MAL-2024-1")]))
    reporter, _ = make_reporter()
    reporter.add_manifest(manifest_with(pkg))
    data = reporter.sorted_remediations()[0]
    assert reporter.summary.critical == 1
    assert data.score == WEIGHT_CRITICAL_VULN
    assert data.tags == ["malware"]


def test_popularity_and_drift_for_direct_dependency():
    insights = PackageInsights(package_current_version="3.0.0",
                               projects=[ProjectInfo(name="p", type="GITHUB", stars=3)])
    pkg = Package(name="lib", version="1.0.0", ecosystem="npm", insights=insights)
    reporter, _ = make_reporter()
    reporter.add_manifest(manifest_with(pkg))
    assert reporter.summary.unpopular == 1
    assert reporter.summary.drifts == 1
    assert set(reporter.sorted_remediations()[0].tags) == {"low popularity", "drift"}


def test_transitive_dependency_skips_popularity_and_drift():
    insights = PackageInsights(package_current_version="3.0.0",
                               projects=[ProjectInfo(name="p", type="GITHUB", stars=3)])
    pkg = Package(name="lib", version="1.0.0", ecosystem="npm", depth=1, insights=insights)
    reporter, _ = make_reporter()
    reporter.add_manifest(manifest_with(pkg))
    assert reporter.summary.unpopular == 0
    assert reporter.summary.drifts == 0
    assert reporter.sorted_remediations() == []


def test_sorted_remediations_by_score_then_name():
    drift = PackageInsights(package_current_version="2.0.0")
    a = Package(name="bbb", version="1.0.0", ecosystem="npm", insights=drift)
    b = Package(name="aaa", version="1.0.0", ecosystem="npm", insights=drift)
    c = Package(name="zzz", version="1.0.0", ecosystem="npm",
                insights=PackageInsights(vulnerabilities=[vuln("CVE-1", "CRITICAL")]))
    reporter, _ = make_reporter()
    reporter.add_manifest(manifest_with(a, b, c))
    ordered = reporter.sorted_remediations()
    assert [d.pkg.name for d in ordered] == ["zzz", "aaa", "bbb"]
    assert [d.score for d in ordered] == [WEIGHT_CRITICAL_VULN, WEIGHT_MAJOR_DRIFT, WEIGHT_MAJOR_DRIFT]


def _graph_packages():
    graph = DependencyGraph()
    root = Package(name="app", version="1.0.0", ecosystem="npm")
    child = Package(name="leaf", version="2.0.0", ecosystem="npm", depth=1,
                    insights=PackageInsights(vulnerabilities=[vuln("GHSA-x", "HIGH")]))
    manifest = manifest_with(root, child, graph=graph)
    graph.add_dependency(root, child)
    graph.add_node(root).root = True
    graph.present = True
    return manifest, root, child


def test_grouped_by_direct_dependency():
    manifest, root, child = _graph_packages()
    reporter, _ = make_reporter(group_by_direct_dependency=True)
    reporter.add_manifest(manifest)
    grouped = reporter.sorted_remediations_grouped_by_direct_dependency()
    assert len(grouped) == 1
    assert grouped[0].pkg is root
    assert [rd.pkg for rd in grouped[0].remediates] == [child]
    assert grouped[0].score == reporter.sorted_remediations()[0].score


def test_path_to_package_root():
    manifest, root, child = _graph_packages()
    reporter, _ = make_reporter()
    reporter.add_manifest(manifest)
    assert reporter.path_to_package_root(child) == " ... [1] > app@1.0.0"
    assert reporter.path_to_package_root(root) == ""
    assert reporter.path_to_package_root(Package(name="x", version="1")) == ""


def test_vulnerability_risk_and_sample_text():
    pkg = Package(name="lib", version="1.0.0", ecosystem="npm", insights=PackageInsights(vulnerabilities=[
        vuln("GHSA-1", "HIGH"), vuln("GHSA-2", "HIGH"), vuln("GHSA-3", "LOW"),
    ]))
    clean = Package(name="clean", version="1.0.0", ecosystem="npm")
    reporter, _ = make_reporter()
    reporter.add_manifest(manifest_with(pkg, clean))
    assert reporter.vulnerability_risk_text(pkg) == " High "
    assert reporter.vulnerability_sample_text(pkg) == "GHSA-1 + 1"
    assert reporter.vulnerability_risk_text(clean) == " None "
    assert reporter.vulnerability_sample_text(clean) == ""


def test_update_version_advice():
    reporter, _ = make_reporter()
    unknown = Package(name="a", version="1.0.0")
    current = Package(name="b", version="1.2.3", insights=PackageInsights(package_current_version="1.2.3"))
    behind = Package(name="c", version="1.0.0", insights=PackageInsights(package_current_version="1.4.0"))
    assert reporter.update_version_advice(unknown) == "Not Available"
    assert reporter.update_version_advice(current) == "-"
    assert reporter.update_version_advice(behind) == "1.4.0"


def test_analyzer_events_and_finish_output():
    pkg = Package(name="lib", version="1.0.0", ecosystem="npm")
    manifest = manifest_with(pkg)
    reporter, stream = make_reporter()
    reporter.add_manifest(manifest)
    reporter.add_analyzer_event(AnalyzerEvent(
        type=EventType.LOCKFILE_POISONING_SIGNAL, message="untrusted registry url"))
    reporter.add_analyzer_event(AnalyzerEvent(
        type=EventType.FILTER_EXPRESSION_MATCHED, message="bad", package=pkg, filter=Filter(name="f")))
    assert reporter.lockfile_poisoning == ["untrusted registry url"]
    assert reporter.violations[pkg.id()].pkg_name == "lib@1.0.0"

    reporter.finish()
    output = stream.getvalue()
    assert "Lockfile Poisoning Detected" in output
    assert "untrusted registry url" in output
    assert "No risky libraries identified" in output
    assert "\x1b[" not in output


def test_finish_reports_additional_libraries():
    packages = [
        Package(name=f"lib{i}", version="1.0.0", ecosystem="npm",
                insights=PackageInsights(vulnerabilities=[vuln(f"CVE-{i}", "LOW")]))
        for i in range(SUMMARY_REPORT_MAX_UPGRADE_ADVICE + 2)
    ]
    reporter, stream = make_reporter()
    reporter.add_manifest(manifest_with(*packages))
    reporter.finish()
    output = stream.getvalue()
    assert "Consider upgrading the following libraries" in output
    assert "more libraries that should be upgraded to reduce risk" in output
    shown = [p.name for p in packages if f"{p.name}@1.0.0" in output]
    assert len(shown) == SUMMARY_REPORT_MAX_UPGRADE_ADVICE


def test_color_output_uses_escape_codes():
    stream = io.StringIO()
    reporter = SummaryReporter(SummaryReporterConfig(), stream=stream, use_color=True)
    reporter.finish()
    assert "\x1b[" in stream.getvalue()
    assert "Summary of Findings" in stream.getvalue()