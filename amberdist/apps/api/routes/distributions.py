from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, Field

from amberdist.apps.api.deps import get_distribution_engine
from amberdist.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from amberdist.apps.api.response import SuccessEnvelope, success_response
from amberdist.domain.distribution import (
    DistributionEvent,
    DistributionRequest,
    DistributionSummary,
    DistributionUnit,
)
from amberdist.services.distribution.engine import DistributionEngine


router = APIRouter(tags=["distributions"], responses=DEFAULT_ERROR_RESPONSES)


class DistributeRequest(BaseModel):
    # Empty lists fall back to the alert's own channels and provinces.
    channels: list[str] = Field(default_factory=list)
    target_provinces: list[str] = Field(default_factory=list)
    partner_ids: list[str] = Field(default_factory=list)
    media_ids: list[str] = Field(default_factory=list)


class SummaryResponse(BaseModel):
    alert_id: str
    total: int
    by_status: dict[str, int]
    by_channel: dict[str, int]


class DistributeResponse(BaseModel):
    success: bool
    alert_id: str
    distributions_created: int
    summary: SummaryResponse


class DistributionUnitResponse(BaseModel):
    id: str
    alert_id: str
    channel: str
    status: str
    target_id: str | None
    target_name: str | None
    target_contact: str | None
    channel_config: dict[str, Any]
    status_message: str | None
    retry_count: int
    max_retries: int
    next_retry_at: str | None
    queued_at: str | None
    sent_at: str | None
    delivered_at: str | None
    failed_at: str | None
    external_id: str | None
    external_response: dict[str, Any] | None
    created_at: str
    updated_at: str


class DistributionEventResponse(BaseModel):
    id: int | None
    alert_id: str
    distribution_id: str | None
    event_type: str
    channel: str | None
    target_name: str | None
    old_status: str | None
    new_status: str | None
    message: str
    actor_type: str
    metadata: dict[str, Any]
    created_at: str


class CancelRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class CancelResponse(BaseModel):
    alert_id: str
    cancelled: int


class ProcessRequest(BaseModel):
    limit: int | None = Field(default=None, ge=0, le=1000)


class ProcessResponse(BaseModel):
    processed: int


class DeliveredRequest(BaseModel):
    external_id: str | None = None
    confirmation: dict[str, Any] | None = None


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _summary_response(summary: DistributionSummary) -> SummaryResponse:
    return SummaryResponse(**summary.as_dict())


def _unit_response(unit: DistributionUnit) -> DistributionUnitResponse:
    return DistributionUnitResponse(
        id=unit.id,
        alert_id=unit.alert_id,
        channel=unit.channel,
        status=unit.status,
        target_id=unit.target_id,
        target_name=unit.target_name,
        target_contact=unit.target_contact,
        channel_config=dict(unit.channel_config),
        status_message=unit.status_message,
        retry_count=unit.retry_count,
        max_retries=unit.max_retries,
        next_retry_at=_iso(unit.next_retry_at),
        queued_at=_iso(unit.queued_at),
        sent_at=_iso(unit.sent_at),
        delivered_at=_iso(unit.delivered_at),
        failed_at=_iso(unit.failed_at),
        external_id=unit.external_id,
        external_response=unit.external_response,
        created_at=unit.created_at.isoformat(),
        updated_at=unit.updated_at.isoformat(),
    )


def _event_response(event: DistributionEvent) -> DistributionEventResponse:
    return DistributionEventResponse(
        id=event.id,
        alert_id=event.alert_id,
        distribution_id=event.distribution_id,
        event_type=event.event_type,
        channel=event.channel,
        target_name=event.target_name,
        old_status=event.old_status,
        new_status=event.new_status,
        message=event.message,
        actor_type=event.actor_type,
        metadata=dict(event.metadata),
        created_at=event.created_at.isoformat(),
    )


@router.post(
    "/alerts/{alert_id}/distributions",
    status_code=201,
    response_model=SuccessEnvelope[DistributeResponse],
)
async def create_distributions(
    alert_id: str,
    payload: DistributeRequest,
    request: Request,
    engine: DistributionEngine = Depends(get_distribution_engine),
) -> dict:
    # Domain errors (missing/inactive alert, unknown channel) are mapped by the app handlers.
    result = await engine.distribute(
        DistributionRequest(
            alert_id=alert_id,
            channels=tuple(payload.channels),
            target_provinces=tuple(payload.target_provinces),
            partner_ids=tuple(payload.partner_ids),
            media_ids=tuple(payload.media_ids),
        )
    )
    data = DistributeResponse(
        success=result.success,
        alert_id=result.alert_id,
        distributions_created=result.distributions_created,
        summary=_summary_response(result.summary),
    )
    return success_response(request=request, data=data)


@router.get(
    "/alerts/{alert_id}/distributions/summary",
    response_model=SuccessEnvelope[SummaryResponse],
)
async def get_distribution_summary(
    alert_id: str,
    request: Request,
    engine: DistributionEngine = Depends(get_distribution_engine),
) -> dict:
    summary = await engine.summarize(alert_id)
    return success_response(request=request, data=_summary_response(summary))


@router.get(
    "/alerts/{alert_id}/distributions",
    response_model=SuccessEnvelope[list[DistributionUnitResponse]],
)
async def list_distributions(
    alert_id: str,
    request: Request,
    engine: DistributionEngine = Depends(get_distribution_engine),
) -> dict:
    units = await engine.list_units(alert_id)
    return success_response(
        request=request,
        data=[_unit_response(unit).model_dump(mode="json") for unit in units],
    )


@router.get(
    "/alerts/{alert_id}/distributions/events",
    response_model=SuccessEnvelope[list[DistributionEventResponse]],
)
async def list_distribution_events(
    alert_id: str,
    request: Request,
    engine: DistributionEngine = Depends(get_distribution_engine),
) -> dict:
    events = await engine.list_events(alert_id)
    return success_response(
        request=request,
        data=[_event_response(event).model_dump(mode="json") for event in events],
    )


@router.post(
    "/alerts/{alert_id}/distributions/cancel",
    response_model=SuccessEnvelope[CancelResponse],
)
async def cancel_distributions(
    alert_id: str,
    payload: CancelRequest,
    request: Request,
    engine: DistributionEngine = Depends(get_distribution_engine),
) -> dict:
    cancelled = await engine.cancel(alert_id, payload.reason)
    return success_response(request=request, data=CancelResponse(alert_id=alert_id, cancelled=cancelled))


@router.post("/distributions/process", response_model=SuccessEnvelope[ProcessResponse])
async def process_distributions(
    request: Request,
    payload: ProcessRequest | None = None,
    engine: DistributionEngine = Depends(get_distribution_engine),
) -> dict:
    # Operator-triggered sweep; the recurring worker sweep runs regardless.
    limit = payload.limit if payload is not None else None
    processed = await engine.process_due(limit=limit)
    return success_response(request=request, data=ProcessResponse(processed=processed))


@router.post(
    "/distributions/{unit_id}/delivered",
    response_model=SuccessEnvelope[DistributionUnitResponse],
)
async def confirm_distribution_delivered(
    unit_id: str,
    payload: DeliveredRequest,
    request: Request,
    engine: DistributionEngine = Depends(get_distribution_engine),
) -> dict:
    unit = await engine.confirm_delivery(
        unit_id,
        external_id=payload.external_id,
        confirmation=payload.confirmation,
    )
    return success_response(request=request, data=_unit_response(unit))
