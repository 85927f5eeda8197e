"""Domain errors. Transport and storage errors live next to their adapters
(`clients.telegram.TelegramError`, `repository.DuplicateKey`)."""
from __future__ import annotations


class BotMakerError(Exception):
    code = "bot_maker_error"

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail or self.code)
        self.detail = detail or self.code


class UnknownTenant(BotMakerError):
    code = "unknown_tenant"


class MalformedEvent(BotMakerError):
    code = "malformed_event"


class InvalidCredential(BotMakerError):
    code = "invalid_credential"


class DuplicateCredential(BotMakerError):
    code = "duplicate_credential"


class WebhookRegistrationFailed(BotMakerError):
    code = "webhook_registration_failed"


class TenantNotFound(BotMakerError):
    code = "tenant_not_found"


class ValidationError(BotMakerError):
    code = "validation_error"


class BroadcastScheduleError(BotMakerError):
    code = "broadcast_schedule_failed"
