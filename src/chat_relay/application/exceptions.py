from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class DuplicateConnectionError(AppError):
    pass


class ParticipantLookupError(AppError):
    pass


class NotificationApiError(AppError):
    pass


class NotificationApiNotConfigured(NotificationApiError):
    pass
