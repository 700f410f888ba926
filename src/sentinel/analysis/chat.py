"""Operator chat assistant with live system context."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from loguru import logger

from src.sentinel.analysis.genai_client import GenAIClient
from src.sentinel.core.config import settings
from src.sentinel.core.exceptions import AnalysisUnavailableError
from src.sentinel.models.domain import LogEntry, MetricPoint, utc_now


@dataclass
class ChatMessage:
    role: str  # "user" or "assistant"
    content: str
    timestamp: datetime = field(default_factory=utc_now)


def build_chat_context(logs: Sequence[LogEntry], latest: Optional[MetricPoint]) -> str:
    messages = " | ".join(entry.message for entry in logs)
    latency = f"{latest.latency:.0f}ms" if latest else "n/a"
    return (
        "You are the Sentinel SRE assistant with access to real-time system state.\n"
        f"CURRENT LOGS: {messages or '(none)'}\n"
        f"LATEST LATENCY: {latency}\n\n"
        "Answer the operator's question about the system state concisely and "
        "professionally. Focus on root cause and remediation."
    )


class SREChatAssistant:
    """Answers free-text operator questions; never raises on backend failure."""

    def __init__(
        self,
        client: Optional[GenAIClient] = None,
        fallback_reply: str = settings.CHAT_FALLBACK_REPLY,
    ):
        self.client = client or GenAIClient()
        self.fallback_reply = fallback_reply

    async def reply(
        self,
        history: Sequence[ChatMessage],
        logs: Sequence[LogEntry],
        latest: Optional[MetricPoint],
    ) -> str:
        """Answer the last message of ``history``.

        Args:
            history: Transcript, oldest first
            logs: Most recent log lines for context
            latest: Most recent metric sample

        Returns:
            Non-empty reply, or the fallback text on failure
        """
        if not self.client.configured:
            logger.debug("Chat backend not configured, returning fallback reply")
            return self.fallback_reply

        parts: List[str] = [build_chat_context(logs, latest)]
        parts.extend(f"{m.role.upper()}: {m.content}" for m in history)

        try:
            text = await self.client.generate(parts)
        except AnalysisUnavailableError as e:
            logger.warning(f"Chat backend unavailable: {e}")
            return self.fallback_reply

        text = text.strip()
        return text or self.fallback_reply
