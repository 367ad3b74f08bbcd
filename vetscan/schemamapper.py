"""Conversion of Insights API severities into the report model."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class InsightsVulnerabilitySeverity:
    """A vulnerability severity as reported by the Insights API."""

    risk: str | None = None
    score: str | None = None
    type: str | None = None


class ModelSeverityType(Enum):
    UNKNOWN_TYPE = "UNKNOWN_TYPE"
    CVSSV2 = "CVSSV2"
    CVSSV3 = "CVSSV3"


class ModelSeverityRisk(Enum):
    UNKNOWN_RISK = "UNKNOWN_RISK"
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True)
class ModelSeverity:
    """A vulnerability severity in the report model."""

    type: ModelSeverityType = ModelSeverityType.UNKNOWN_TYPE
    risk: ModelSeverityRisk = ModelSeverityRisk.UNKNOWN_RISK
    score: str = ""


_TYPES = {
    "CVSSV2": ModelSeverityType.CVSSV2,
    "CVSSV3": ModelSeverityType.CVSSV3,
}

_RISKS = {
    "CRITICAL": ModelSeverityRisk.CRITICAL,
    "HIGH": ModelSeverityRisk.HIGH,
    "MEDIUM": ModelSeverityRisk.MEDIUM,
    "LOW": ModelSeverityRisk.LOW,
}


def insights_severity_to_model_severity(sev: InsightsVulnerabilitySeverity) -> ModelSeverity:
    """Map an Insights API severity onto the report model severity."""
    return ModelSeverity(
        type=_TYPES.get(sev.type or "", ModelSeverityType.UNKNOWN_TYPE),
        risk=_RISKS.get(sev.risk or "", ModelSeverityRisk.UNKNOWN_RISK),
        score=sev.score or "",
    )