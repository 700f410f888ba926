"""Health analysis: analyzer contract, implementations, trigger and chat."""

from .base import HealthAnalyzer
from .heuristic import HeuristicHealthAnalyzer, HeuristicThresholds
from .genai_client import GenAIClient
from .genai_analyzer import GenerativeHealthAnalyzer, build_analysis_prompt
from .trigger import AutoAnalysisTrigger, TriggerState
from .chat import ChatMessage, SREChatAssistant

__all__ = [
    "HealthAnalyzer",
    "HeuristicHealthAnalyzer",
    "HeuristicThresholds",
    "GenAIClient",
    "GenerativeHealthAnalyzer",
    "build_analysis_prompt",
    "AutoAnalysisTrigger",
    "TriggerState",
    "ChatMessage",
    "SREChatAssistant",
]
