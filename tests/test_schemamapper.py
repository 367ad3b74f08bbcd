import pytest

from vetscan.schemamapper import (
    InsightsVulnerabilitySeverity,
    ModelSeverityRisk,
    ModelSeverityType,
    insights_severity_to_model_severity,
)


@pytest.mark.parametrize(
    "sev_type, risk, score, expected_type, expected_risk, expected_score",
    [
        ("CVSSV2", "CRITICAL", "Score-A", ModelSeverityType.CVSSV2, ModelSeverityRisk.CRITICAL, "Score-A"),
        ("BAD-TYPE", "CRITICAL", "Score-B", ModelSeverityType.UNKNOWN_TYPE, ModelSeverityRisk.CRITICAL, "Score-B"),
        ("CVSSV2", "WHAT?", "Score-C", ModelSeverityType.CVSSV2, ModelSeverityRisk.UNKNOWN_RISK, "Score-C"),
        ("CVSSV2", "CRITICAL", "", ModelSeverityType.CVSSV2, ModelSeverityRisk.CRITICAL, ""),
    ],
    ids=["positive", "bad-type", "bad-risk", "empty-score"],
)
def test_mapping(sev_type, risk, score, expected_type, expected_risk, expected_score):
    sev = insights_severity_to_model_severity(
        InsightsVulnerabilitySeverity(type=sev_type, risk=risk, score=score)
    )
    assert sev.score == expected_score
    assert sev.risk == expected_risk
    assert sev.type == expected_type


def test_all_missing_fields():
    sev = insights_severity_to_model_severity(InsightsVulnerabilitySeverity())
    assert sev.type == ModelSeverityType.UNKNOWN_TYPE
    assert sev.risk == ModelSeverityRisk.UNKNOWN_RISK
    assert sev.score == ""


@pytest.mark.parametrize(
    "risk, expected",
    [
        ("HIGH", ModelSeverityRisk.HIGH),
        ("MEDIUM", ModelSeverityRisk.MEDIUM),
        ("LOW", ModelSeverityRisk.LOW),
        ("UNKNOWN", ModelSeverityRisk.UNKNOWN_RISK),
    ],
)
def test_risk_levels(risk, expected):
    sev = insights_severity_to_model_severity(InsightsVulnerabilitySeverity(risk=risk, type="CVSSV3"))
    assert sev.risk == expected
    assert sev.type == ModelSeverityType.CVSSV3