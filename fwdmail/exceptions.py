"""
Exception-Hierarchie für die Forward-Email Alias-Synchronisierung.
"""

from typing import Optional


class FwdMailError(Exception):
    """Basis-Exception für fwdmail."""

    pass


class SyncValidationError(FwdMailError):
    """Ungültige Eingaben (Domains, Modus, Konfliktstrategie)."""

    pass


class AliasFetchError(FwdMailError):
    """Die Aliase einer Domain konnten nicht abgerufen werden."""

    def __init__(self, domain: str, cause: Exception):
        self.domain = domain
        self.cause = cause
        super().__init__(f"Aliase für {domain} konnten nicht abgerufen werden: {cause}")


class ConflictResolutionError(FwdMailError):
    """Die interaktive Konfliktauflösung ist fehlgeschlagen."""

    pass


class SyncApplyError(FwdMailError):
    """
    Eine Aktion des Plans ist fehlgeschlagen.

    Bereits ausgeführte Aktionen bleiben bestehen (kein Rollback).
    """

    def __init__(self, action_type: str, domain: str, name: str, applied: int, total: int, cause: Exception):
        self.action_type = action_type
        self.domain = domain
        self.name = name
        self.applied = applied
        self.total = total
        self.cause = cause
        super().__init__(
            f"{action_type} {name}@{domain} fehlgeschlagen "
            f"({applied} von {total} Aktionen ausgeführt): {cause}"
        )


# Fehlertypen nach HTTP-Status
_ERROR_TYPES = {
    400: "BadRequest",
    401: "Unauthorized",
    403: "Forbidden",
    404: "NotFound",
    409: "Conflict",
    429: "RateLimit",
    500: "ServerError",
    503: "ServiceUnavailable",
}


class ForwardEmailError(FwdMailError):
    """Fehlerantwort der Forward Email API (status_code 0 = Verbindungsfehler)."""

    def __init__(self, status_code: int, message: str, code: Optional[str] = None, retry_after: Optional[str] = None):
        self.status_code = status_code
        self.message = message
        self.code = code
        self.retry_after = retry_after
        super().__init__(str(self))

    @property
    def error_type(self) -> str:
        if self.status_code == 0:
            return "ConnectionError"
        if self.status_code in _ERROR_TYPES:
            return _ERROR_TYPES[self.status_code]
        if 400 <= self.status_code < 500:
            return "ValidationError"
        return "ServerError"

    def __str__(self) -> str:
        if self.code:
            return f"{self.error_type} ({self.code}): {self.message}"
        return f"{self.error_type}: {self.message}"
