"""Health analyzer backed by a generative-language model."""
from typing import Optional, Sequence

from loguru import logger
from pydantic import ValidationError

from src.sentinel.analysis.base import HealthAnalyzer
from src.sentinel.analysis.genai_client import GenAIClient, parse_json_text
from src.sentinel.core.exceptions import AnalysisUnavailableError
from src.sentinel.models.analysis import AnalysisResult
from src.sentinel.models.domain import LogEntry, MetricPoint

PROMPT_METRIC_SAMPLES = 10

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "riskScore": {"type": "NUMBER"},
        "recommendation": {"type": "STRING", "enum": ["STAY", "ROLLBACK", "INVESTIGATE"]},
        "reasoning": {"type": "STRING"},
        "confidence": {"type": "NUMBER"},
        "suggestedVersion": {"type": "STRING"},
        "suspectLogIndices": {"type": "ARRAY", "items": {"type": "NUMBER"}},
        "detectedAnomalies": {"type": "ARRAY", "items": {"type": "STRING"}},
        "impactAssessment": {"type": "STRING"},
    },
    "required": [
        "riskScore",
        "recommendation",
        "reasoning",
        "confidence",
        "detectedAnomalies",
        "impactAssessment",
    ],
}


def build_analysis_prompt(
    logs: Sequence[LogEntry],
    metrics: Sequence[MetricPoint],
    current_version: str,
    previous_version: str,
) -> str:
    """SRE analysis prompt; log lines are tagged with their window position."""
    log_lines = "\n".join(
        f"[ID:{i}] [{entry.level.value}] {entry.message}" for i, entry in enumerate(logs)
    )
    metric_lines = "\n".join(
        f"Latency: {m.latency:.0f}ms, Errors: {m.errors}, CPU: {m.cpu:.0f}%, Memory: {m.memory:.0f}%"
        for m in list(metrics)[-PROMPT_METRIC_SAMPLES:]
    )
    return (
        "As an expert Site Reliability Engineer (SRE), analyze the health of version "
        f"{current_version}.\n"
        f"Compare current metrics against the previous stable version {previous_version}.\n\n"
        f"RECENT LOGS:\n{log_lines or '(none)'}\n\n"
        f"RECENT METRICS (past {PROMPT_METRIC_SAMPLES} cycles):\n{metric_lines or '(none)'}\n\n"
        'Identify which logs are "suspect" (likely root cause) by their ID. '
        "Return a structured JSON report with riskScore (0-100), recommendation "
        "(STAY, ROLLBACK, INVESTIGATE), reasoning, confidence (0-1), suggestedVersion, "
        "suspectLogIndices, detectedAnomalies and impactAssessment."
    )


class GenerativeHealthAnalyzer(HealthAnalyzer):
    """Asks the generative backend for a schema-constrained JSON assessment."""

    def __init__(self, client: Optional[GenAIClient] = None):
        self.client = client or GenAIClient()

    async def analyze(
        self,
        logs: Sequence[LogEntry],
        metrics: Sequence[MetricPoint],
        current_version: str,
        previous_version: str,
    ) -> AnalysisResult:
        prompt = build_analysis_prompt(logs, metrics, current_version, previous_version)
        raw = await self.client.generate([prompt], response_schema=RESPONSE_SCHEMA)

        try:
            result = AnalysisResult.model_validate(parse_json_text(raw))
        except (ValueError, ValidationError) as e:
            logger.warning(f"Discarding malformed analysis payload: {e}")
            raise AnalysisUnavailableError(f"Malformed analysis payload: {e}") from e

        logger.info(
            f"Analysis for {current_version}: {result.recommendation.value} "
            f"(risk={result.risk_score:.0f}, confidence={result.confidence:.0%})"
        )
        return result
