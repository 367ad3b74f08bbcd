import pytest

from vetscan.reporter.links import vuln_id_to_link


@pytest.mark.parametrize(
    "vuln_id, expected",
    [
        ("GHSA-abc", "https://github.com/advisories/GHSA-abc"),
        ("CVE-2021-1234", "https://cve.mitre.org/cgi-bin/cvename.cgi?name=CVE-2021-1234"),
        ("unknown", "#"),
    ],
)
def test_vuln_id_to_link(vuln_id, expected):
    assert vuln_id_to_link(vuln_id) == expected


def test_lowercase_prefix_keeps_original_case():
    assert vuln_id_to_link("ghsa-123") == "https://github.com/advisories/ghsa-123"


def test_empty_id():
    assert vuln_id_to_link("") == "#"