from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from src.sentinel.models.analysis import AnalysisResult
from src.sentinel.models.domain import RollbackTrigger


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FaultUpdateRequest(CamelModel):
    latency_spike: Optional[bool] = None
    error_burst: Optional[bool] = None
    memory_leak: Optional[bool] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {"errorBurst": True, "latencySpike": True}
        },
    )


class RollbackRequest(CamelModel):
    target_version: Optional[str] = Field(
        default=None,
        description="Version to restore; defaults to the analysis suggestion or previous version",
    )
    trigger: RollbackTrigger = RollbackTrigger.MANUAL

    @field_validator("trigger")
    @classmethod
    def _operator_trigger(cls, value: RollbackTrigger) -> RollbackTrigger:
        if value == RollbackTrigger.AUTOMATIC:
            raise ValueError("AUTOMATIC rollbacks are only issued by the engine")
        return value


class AnalysisStatusResponse(CamelModel):
    state: str
    analysis: Optional[AnalysisResult] = None


class ChatMessageSchema(CamelModel):
    role: str = Field(pattern="^(user|assistant)$")
    content: str = Field(min_length=1)
    timestamp: Optional[datetime] = None


class ChatRequest(CamelModel):
    history: List[ChatMessageSchema] = Field(min_length=1)


class ChatResponse(CamelModel):
    reply: str
