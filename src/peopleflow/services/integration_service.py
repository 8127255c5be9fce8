"""Integration configuration, credentials and health."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Callable

from sqlalchemy import select
from sqlalchemy.orm import Session

from peopleflow.config import Settings, get_settings
from peopleflow.errors import (
    InvalidInputError,
    NotFoundError,
    PeopleFlowError,
    ProviderAuthError,
    ProviderTransportError,
)
from peopleflow.models import Integration, TimeEntrySource
from peopleflow.providers import PROVIDERS, TimeTrackingProvider, create_provider
from peopleflow.services.activity_service import ActivityService, ActivityType
from peopleflow.services.credentials import CredentialCipher, CredentialDecryptError

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[str, str, float], TimeTrackingProvider]

PROVIDER_NAMES = {
    TimeEntrySource.PROVIDER_A.value: "Timebutler",
    TimeEntrySource.PROVIDER_B.value: "123erfasst",
}


class IntegrationService:
    """Reads and updates integration records."""

    def __init__(
        self,
        session: Session,
        settings: Settings | None = None,
        provider_factory: ProviderFactory = create_provider,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.cipher = CredentialCipher(self.settings.encryption_key)
        self.provider_factory = provider_factory
        self.activity = ActivityService(session)

    def find(self, provider: str) -> Integration | None:
        return self.session.scalar(select(Integration).where(Integration.provider == provider))

    def get(self, provider: str) -> Integration:
        integration = self.find(provider)
        if integration is None:
            raise NotFoundError("Integration", provider)
        return integration

    def list_all(self) -> list[Integration]:
        return list(self.session.scalars(select(Integration).order_by(Integration.provider)))

    def list_auto_sync(self) -> list[Integration]:
        """Integrations the scheduler should run: active and auto-sync enabled."""
        query = (
            select(Integration)
            .where(Integration.active.is_(True), Integration.auto_sync.is_(True))
            .order_by(Integration.provider)
        )
        return list(self.session.scalars(query))

    def configure(
        self,
        provider: str,
        credentials: str,
        auto_sync: bool | None = None,
        sync_start_date: date | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Integration:
        """Create or update an integration and store its credentials encrypted."""
        if provider not in PROVIDERS:
            raise InvalidInputError("provider", f"unknown provider '{provider}'")
        if not credentials or not credentials.strip():
            raise InvalidInputError("credentials", "are required")
        if provider == TimeEntrySource.PROVIDER_B.value and ":" not in credentials:
            raise InvalidInputError("credentials", "must have the form 'email:password'")

        integration = self.find(provider)
        if integration is None:
            integration = Integration(
                provider=provider,
                name=PROVIDER_NAMES.get(provider, provider),
                metadata_json={},
            )
            self.session.add(integration)

        integration.encrypted_credentials = self.cipher.encrypt(credentials.strip())
        integration.active = True
        integration.last_error = None
        integration.last_error_code = None
        if auto_sync is not None:
            integration.auto_sync = auto_sync
        if sync_start_date is not None:
            integration.sync_start_date = sync_start_date
        elif integration.sync_start_date is None:
            integration.sync_start_date = date(date.today().year, 1, 1)
        if metadata:
            integration.metadata_json = {**(integration.metadata_json or {}), **metadata}
        self.session.flush()

        self.activity.record(
            ActivityType.INTEGRATION_CONFIGURED,
            f"{integration.name} integration configured",
            target=provider,
        )
        return integration

    def credentials_for(self, integration: Integration) -> str:
        try:
            return self.cipher.decrypt(integration.encrypted_credentials)
        except CredentialDecryptError as e:
            raise ProviderAuthError(integration.provider, str(e)) from e

    def set_active(self, provider: str, active: bool) -> Integration:
        integration = self.get(provider)
        integration.active = active
        self.session.flush()
        return integration

    def set_auto_sync(self, provider: str, enabled: bool) -> Integration:
        integration = self.get(provider)
        integration.auto_sync = enabled
        self.session.flush()
        return integration

    def set_sync_start_date(self, provider: str, start: date) -> Integration:
        integration = self.get(provider)
        integration.sync_start_date = start
        self.session.flush()
        return integration

    def build_provider(self, integration: Integration) -> TimeTrackingProvider:
        try:
            return self.provider_factory(
                integration.provider,
                self.credentials_for(integration),
                self.settings.http_timeout_seconds,
            )
        except ValueError as e:
            raise ProviderAuthError(integration.provider, str(e)) from e

    def test_connection(self, provider: str) -> bool:
        """Probe the provider; rejected credentials deactivate the integration."""
        integration = self.get(provider)
        try:
            client = self.build_provider(integration)
            try:
                client.test_connection()
            finally:
                client.close()
        except ProviderAuthError as e:
            self.deactivate(integration, e)
            return False
        except ProviderTransportError as e:
            self.record_failure(integration, e)
            return False
        integration.last_error = None
        integration.last_error_code = None
        self.session.flush()
        return True

    def deactivate(self, integration: Integration, error: PeopleFlowError) -> None:
        """Mark the integration inactive after an authentication failure."""
        integration.active = False
        integration.last_error = error.message
        integration.last_error_code = error.code
        self.session.flush()
        self.activity.record(
            ActivityType.INTEGRATION_DEACTIVATED,
            f"{integration.name} deactivated: {error.message}",
            target=integration.provider,
            code=error.code,
        )
        logger.warning("Integration %s deactivated: %s", integration.provider, error.message)

    def record_failure(self, integration: Integration, error: PeopleFlowError) -> None:
        integration.last_error = error.message
        integration.last_error_code = error.code
        self.session.flush()

    def mark_synced(self, integration: Integration, synced_at: datetime) -> None:
        integration.last_sync_at = synced_at
        integration.last_error = None
        integration.last_error_code = None
        self.session.flush()

    def health(self) -> list[dict[str, Any]]:
        """Per-integration status; AUTH failures are reported as errors."""
        report = []
        for integration in self.list_all():
            if integration.last_error_code == ProviderAuthError.code:
                state = "error"
            elif not integration.active:
                state = "inactive"
            elif integration.last_error_code:
                state = "degraded"
            else:
                state = "ok"
            report.append(
                {
                    "provider": integration.provider,
                    "status": state,
                    "active": integration.active,
                    "auto_sync": integration.auto_sync,
                    "last_sync_at": integration.last_sync_at,
                    "error": integration.last_error,
                    "error_code": integration.last_error_code,
                }
            )
        return report
