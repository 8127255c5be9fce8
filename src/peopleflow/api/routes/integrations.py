"""Integration management and manual sync trigger."""

from typing import Annotated

from fastapi import APIRouter, Path, Query

from peopleflow.api.dependencies import AppSettings, DbSession, Scheduler
from peopleflow.api.schemas import (
    ConnectionTestResponse,
    ErrorResponse,
    IntegrationConfigure,
    IntegrationResponse,
    IntegrationUpdate,
    ProviderSyncResponse,
    SyncResponse,
)
from peopleflow.errors import ConflictError
from peopleflow.services.import_service import ImportPipeline, ProviderSyncResult
from peopleflow.services.integration_service import IntegrationService
from peopleflow.services.overtime_service import OvertimeEngine

router = APIRouter(tags=["integrations"])


def _sync_response(result: ProviderSyncResult) -> ProviderSyncResponse:
    return ProviderSyncResponse(
        provider=result.provider,
        success=result.success,
        error_code=result.error_code,
        error=result.error,
        summary=result.summary(),
    )


@router.get("/integrations", response_model=list[IntegrationResponse])
def list_integrations(db: DbSession, settings: AppSettings) -> list[IntegrationResponse]:
    return [
        IntegrationResponse.model_validate(i)
        for i in IntegrationService(db, settings).list_all()
    ]


@router.put(
    "/integrations/{provider}",
    response_model=IntegrationResponse,
    responses={422: {"model": ErrorResponse}},
)
def configure_integration(
    db: DbSession,
    settings: AppSettings,
    provider: Annotated[str, Path()],
    payload: IntegrationConfigure,
) -> IntegrationResponse:
    """Store credentials (encrypted) and activate the integration."""
    integration = IntegrationService(db, settings).configure(
        provider,
        payload.credentials,
        auto_sync=payload.auto_sync,
        sync_start_date=payload.sync_start_date,
    )
    return IntegrationResponse.model_validate(integration)


@router.patch(
    "/integrations/{provider}",
    response_model=IntegrationResponse,
    responses={404: {"model": ErrorResponse}},
)
def update_integration(
    db: DbSession,
    settings: AppSettings,
    provider: Annotated[str, Path()],
    payload: IntegrationUpdate,
) -> IntegrationResponse:
    service = IntegrationService(db, settings)
    integration = service.get(provider)
    if payload.active is not None:
        integration = service.set_active(provider, payload.active)
    if payload.auto_sync is not None:
        integration = service.set_auto_sync(provider, payload.auto_sync)
    if payload.sync_start_date is not None:
        integration = service.set_sync_start_date(provider, payload.sync_start_date)
    return IntegrationResponse.model_validate(integration)


@router.post(
    "/integrations/{provider}/test",
    response_model=ConnectionTestResponse,
    responses={404: {"model": ErrorResponse}},
)
def test_integration(
    db: DbSession,
    settings: AppSettings,
    provider: Annotated[str, Path()],
) -> ConnectionTestResponse:
    """Probe the provider; rejected credentials deactivate the integration."""
    service = IntegrationService(db, settings)
    connected = service.test_connection(provider)
    integration = service.get(provider)
    return ConnectionTestResponse(
        provider=provider,
        connected=connected,
        error=integration.last_error,
        error_code=integration.last_error_code,
    )


@router.post(
    "/sync",
    response_model=SyncResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def trigger_sync(
    db: DbSession,
    settings: AppSettings,
    scheduler: Scheduler,
    provider: Annotated[str | None, Query()] = None,
) -> SyncResponse:
    """Run a sync now.

    With a running scheduler and no provider given, a full cycle is
    triggered; it is rejected with CONFLICT while another cycle runs.
    """
    if scheduler is not None and provider is None:
        cycle = scheduler.trigger()
        if cycle is None:
            raise ConflictError("a sync cycle is already running")
        return SyncResponse(
            started=True, providers=[_sync_response(r) for r in cycle.providers]
        )

    pipeline = ImportPipeline(db, settings)
    if provider is not None:
        results = [pipeline.sync_provider(provider)]
    else:
        results = pipeline.sync_all()
    OvertimeEngine(db, settings).recompute_all()
    return SyncResponse(started=True, providers=[_sync_response(r) for r in results])
