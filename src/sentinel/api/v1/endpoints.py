"""Operator endpoints for the rollback engine."""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from loguru import logger

from src.sentinel.analysis.chat import ChatMessage
from src.sentinel.core.limiter import CHAT_RATE, ROLLBACK_RATE, limiter
from src.sentinel.models.schemas import (
    AnalysisStatusResponse,
    ChatRequest,
    ChatResponse,
    FaultUpdateRequest,
    RollbackRequest,
)
from src.sentinel.services.session import DeploymentSession

router = APIRouter()


def get_session(request: Request) -> DeploymentSession:
    return request.app.state.session


# -- Deployments ---------------------------------------------------------

@router.get("/deployments")
async def list_deployments(session: DeploymentSession = Depends(get_session)):
    return {"deployments": [d.to_dict() for d in session.registry.list_deployments()]}


@router.get("/deployments/active")
async def active_deployment(session: DeploymentSession = Depends(get_session)):
    active = session.registry.active_deployment()
    if active is None:
        raise HTTPException(status_code=404, detail="No active deployment")
    return active.to_dict()


# -- Telemetry -----------------------------------------------------------

@router.get("/telemetry/metrics")
async def telemetry_metrics(session: DeploymentSession = Depends(get_session)):
    return {
        "metrics": [m.to_dict() for m in session.store.metrics()],
        "capacity": session.store.metric_capacity,
    }


@router.get("/telemetry/logs")
async def telemetry_logs(session: DeploymentSession = Depends(get_session)):
    return {
        "logs": [entry.to_dict() for entry in session.store.logs()],
        "capacity": session.store.log_capacity,
    }


@router.get("/faults")
async def get_faults(session: DeploymentSession = Depends(get_session)):
    return session.store.faults.to_dict()


@router.put("/faults")
async def update_faults(
    body: FaultUpdateRequest,
    session: DeploymentSession = Depends(get_session),
):
    faults = session.store.set_faults(
        latency_spike=body.latency_spike,
        error_burst=body.error_burst,
        memory_leak=body.memory_leak,
    )
    return faults.to_dict()


# -- Analysis ------------------------------------------------------------

@router.get("/analysis", response_model=AnalysisStatusResponse)
async def get_analysis(session: DeploymentSession = Depends(get_session)):
    return AnalysisStatusResponse(
        state=session.trigger.state.value,
        analysis=session.store.analysis,
    )


@router.post(
    "/analysis",
    response_model=AnalysisStatusResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def run_analysis(
    wait: bool = False,
    session: DeploymentSession = Depends(get_session),
):
    """
    Start a health analysis now, regardless of the anomaly thresholds.

    With ``wait=true`` the response carries the stored result.
    """
    task = session.trigger.trigger_manual()
    if wait:
        await task
    return AnalysisStatusResponse(
        state=session.trigger.state.value,
        analysis=session.store.analysis,
    )


@router.delete("/analysis")
async def clear_analysis(session: DeploymentSession = Depends(get_session)):
    cleared = await session.store.clear_analysis()
    return {"cleared": cleared}


# -- Rollback ------------------------------------------------------------

@router.post("/rollback")
@limiter.limit(ROLLBACK_RATE)
async def rollback(
    request: Request,
    body: RollbackRequest,
    session: DeploymentSession = Depends(get_session),
):
    """Execute a rollback and return its incident report."""
    logger.info(
        f"Rollback requested: target={body.target_version or 'auto'} trigger={body.trigger.value}"
    )
    report = await session.rollback(body.target_version, body.trigger)
    return report.to_dict()


@router.get("/incidents/latest")
async def latest_incident(session: DeploymentSession = Depends(get_session)):
    report = session.last_incident
    if report is None:
        raise HTTPException(status_code=404, detail="No incident recorded")
    return report.to_dict()


# -- Assistant & session ------------------------------------------------

@router.post("/chat", response_model=ChatResponse)
@limiter.limit(CHAT_RATE)
async def chat(
    request: Request,
    body: ChatRequest,
    session: DeploymentSession = Depends(get_session),
):
    history = [
        ChatMessage(role=m.role, content=m.content) if m.timestamp is None
        else ChatMessage(role=m.role, content=m.content, timestamp=m.timestamp)
        for m in body.history
    ]
    return ChatResponse(reply=await session.chat(history))


@router.post("/session/reset")
async def reset_session(session: DeploymentSession = Depends(get_session)):
    await session.reset()
    return {"status": "reset"}
