"""Links to public advisories for vulnerability identifiers."""


def vuln_id_to_link(vuln_id: str) -> str:
    """Return an advisory URL for a GHSA or CVE identifier, else "#"."""
    lowered = vuln_id.lower()
    if lowered.startswith("ghsa-"):
        return f"https://github.com/advisories/{vuln_id}"
    if lowered.startswith("cve-"):
        return f"https://cve.mitre.org/cgi-bin/cvename.cgi?name={vuln_id}"
    return "#"