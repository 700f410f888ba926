"""Risk assessment returned by a health analyzer."""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class Recommendation(str, Enum):
    STAY = "STAY"
    ROLLBACK = "ROLLBACK"
    INVESTIGATE = "INVESTIGATE"


FALLBACK_REASONING = "Analysis service error during deep inspection."
FALLBACK_ANOMALY = "System Timeout"
FALLBACK_IMPACT = "Unknown impact due to processing error."


class AnalysisResult(BaseModel):
    """Structured health assessment of the active deployment.

    Accepts both the camelCase wire names of the analyzer contract and the
    snake_case attribute names.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    risk_score: float = Field(ge=0, le=100)
    recommendation: Recommendation
    reasoning: str
    confidence: float = Field(ge=0.0, le=1.0)
    suggested_version: Optional[str] = None
    suspect_log_indices: Optional[List[int]] = None
    detected_anomalies: List[str]
    impact_assessment: str

    @field_validator("risk_score", mode="before")
    @classmethod
    def _clamp_risk(cls, value):
        if isinstance(value, (int, float)):
            return min(max(value, 0), 100)
        return value

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value):
        if isinstance(value, (int, float)):
            return min(max(value, 0.0), 1.0)
        return value

    @field_validator("recommendation", mode="before")
    @classmethod
    def _upper_recommendation(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @classmethod
    def fallback(cls) -> "AnalysisResult":
        """Total result used whenever the analyzer fails or times out."""
        return cls(
            risk_score=50,
            recommendation=Recommendation.INVESTIGATE,
            reasoning=FALLBACK_REASONING,
            confidence=0.0,
            detected_anomalies=[FALLBACK_ANOMALY],
            impact_assessment=FALLBACK_IMPACT,
        )

    @property
    def is_fallback(self) -> bool:
        return self.confidence == 0.0 and self.reasoning == FALLBACK_REASONING

    def to_wire(self) -> dict:
        """Serialize with the camelCase names of the analyzer contract."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
