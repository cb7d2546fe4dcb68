"""
Forward Email Client für die Verwaltung von Aliasen (Weiterleitungen).

Spricht die REST API von Forward Email über requests an.
Authentifizierung per HTTP Basic Auth mit dem API-Key als Benutzername.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote

import requests

from .config import ForwardEmailConfig
from .exceptions import ForwardEmailError


@dataclass(frozen=True)
class Alias:
    """Momentaufnahme eines Alias, wie ihn die API liefert."""

    id: str
    name: str
    recipients: Tuple[str, ...] = ()
    is_enabled: bool = True
    labels: Tuple[str, ...] = ()
    description: str = ""
    domain_id: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Alias":
        """Erzeugt einen Alias aus einer API-Antwort."""
        domain = data.get("domain")
        domain_id = data.get("domain_id") or ""
        if not domain_id and isinstance(domain, dict):
            domain_id = domain.get("id", "")
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            recipients=tuple(data.get("recipients") or ()),
            is_enabled=bool(data.get("is_enabled", True)),
            labels=tuple(data.get("labels") or ()),
            description=data.get("description") or "",
            domain_id=str(domain_id),
        )


class ForwardEmailClient:
    """
    Client für den Zugriff auf die Forward Email API.

    Listet, erstellt, ändert und löscht Aliase einer Domain.
    """

    def __init__(self, config: ForwardEmailConfig, logger: Optional[logging.Logger] = None):
        """
        Initialisiert den Forward Email Client.

        Args:
            config: API-Konfiguration mit API-Key
            logger: Optionaler Logger
        """
        self.config = config
        self.logger = logger or logging.getLogger("fwdmail.client")
        self._session: Optional[requests.Session] = None

    def _get_session(self) -> requests.Session:
        """Lazy initialization der HTTP-Session."""
        if self._session is None:
            session = requests.Session()
            session.auth = (self.config.api_key, "")
            session.headers.update(
                {
                    "Accept": "application/json",
                    "User-Agent": self.config.user_agent,
                }
            )
            self._session = session
        return self._session

    def close(self) -> None:
        """Schließt die HTTP-Session."""
        if self._session is not None:
            self._session.close()
            self._session = None

    def _alias_path(self, domain: str, alias_id: Optional[str] = None) -> str:
        path = f"/v1/domains/{quote(domain, safe='')}/aliases"
        if alias_id:
            path += f"/{quote(alias_id, safe='')}"
        return path

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Führt einen API-Aufruf aus.

        Returns:
            Dekodierte JSON-Antwort oder None bei leerer Antwort

        Raises:
            ForwardEmailError: Bei HTTP-Fehlern oder Verbindungsproblemen
        """
        url = f"{self.config.base_url.rstrip('/')}{path}"
        self.logger.debug(f"{method} {url}")

        try:
            response = self._get_session().request(
                method,
                url,
                params=params,
                json=payload,
                timeout=self.config.timeout,
            )
        except requests.RequestException as e:
            raise ForwardEmailError(0, f"Verbindung zu {url} fehlgeschlagen: {e}") from e

        if response.status_code >= 400:
            raise self._error_from_response(response)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def _error_from_response(self, response: requests.Response) -> ForwardEmailError:
        """Wandelt eine Fehlerantwort in einen ForwardEmailError um."""
        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            message = "Rate Limit überschritten"
            if retry_after:
                message += f", erneut versuchen nach {retry_after}"
            return ForwardEmailError(429, message, retry_after=retry_after)

        message = response.reason or f"HTTP {response.status_code}"
        code = None
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            # Priorität: message -> error -> HTTP-Status
            message = body.get("message") or body.get("error") or message
            code = body.get("code")
        return ForwardEmailError(response.status_code, message, code)

    @staticmethod
    def _check_recipients(recipients: Sequence[str]) -> None:
        for recipient in recipients:
            if not recipient or not recipient.strip():
                raise ValueError("Empfänger darf nicht leer sein")

    def list_aliases(self, domain: str) -> List[Alias]:
        """
        Ruft alle Aliase einer Domain ab.

        Es wird eine einzelne Seite mit der konfigurierten Größe abgerufen.

        Args:
            domain: Domainname oder -ID

        Returns:
            Liste der Aliase
        """
        if not domain:
            raise ValueError("Domain ist erforderlich")

        data = self._request(
            "GET",
            self._alias_path(domain),
            params={"limit": self.config.alias_limit},
        )
        aliases = [Alias.from_dict(item) for item in data or []]

        if len(aliases) >= self.config.alias_limit:
            self.logger.warning(
                f"{domain}: {len(aliases)} Aliase abgerufen, Limit von "
                f"{self.config.alias_limit} erreicht - Liste ist evtl. unvollständig"
            )
        self.logger.debug(f"{domain}: {len(aliases)} Aliase geladen")
        return aliases

    def get_alias(self, domain: str, alias_id: str) -> Alias:
        """Ruft einen einzelnen Alias ab."""
        if not domain:
            raise ValueError("Domain ist erforderlich")
        if not alias_id:
            raise ValueError("Alias-ID ist erforderlich")

        data = self._request("GET", self._alias_path(domain, alias_id))
        return Alias.from_dict(data or {})

    def create_alias(self, domain: str, alias: Alias) -> Alias:
        """
        Legt einen neuen Alias an.

        Args:
            domain: Zieldomain
            alias: Gewünschter Zustand (Name, Empfänger, Labels, Status)

        Returns:
            Der angelegte Alias
        """
        if not domain:
            raise ValueError("Domain ist erforderlich")
        if not alias.name:
            raise ValueError("Alias-Name ist erforderlich")
        if not alias.recipients:
            raise ValueError("Mindestens ein Empfänger ist erforderlich")
        self._check_recipients(alias.recipients)

        payload: Dict[str, Any] = {
            "name": alias.name,
            "recipients": list(alias.recipients),
            "is_enabled": alias.is_enabled,
        }
        if alias.labels:
            payload["labels"] = list(alias.labels)
        if alias.description:
            payload["description"] = alias.description

        data = self._request("POST", self._alias_path(domain), payload=payload)
        return Alias.from_dict(data or payload)

    def update_alias(
        self,
        domain: str,
        alias_id: str,
        recipients: Optional[Sequence[str]] = None,
        enabled: Optional[bool] = None,
        labels: Optional[Sequence[str]] = None,
        description: Optional[str] = None,
    ) -> Optional[Alias]:
        """
        Ändert einen bestehenden Alias.

        Felder, die None sind, werden nicht verändert.
        """
        if not domain:
            raise ValueError("Domain ist erforderlich")
        if not alias_id:
            raise ValueError("Alias-ID ist erforderlich")

        payload: Dict[str, Any] = {}
        if recipients is not None:
            self._check_recipients(recipients)
            payload["recipients"] = list(recipients)
        if enabled is not None:
            payload["is_enabled"] = enabled
        if labels is not None:
            payload["labels"] = list(labels)
        if description is not None:
            payload["description"] = description

        data = self._request("PUT", self._alias_path(domain, alias_id), payload=payload)
        return Alias.from_dict(data) if data else None

    def delete_alias(self, domain: str, alias_id: str) -> None:
        """Löscht einen Alias."""
        if not domain:
            raise ValueError("Domain ist erforderlich")
        if not alias_id:
            raise ValueError("Alias-ID ist erforderlich")

        self._request("DELETE", self._alias_path(domain, alias_id))

    def test_connection(self) -> bool:
        """
        Testet die Verbindung zur Forward Email API.

        Returns:
            True wenn Verbindung erfolgreich, sonst False
        """
        try:
            account = self._request("GET", "/v1/account") or {}
            email = account.get("email", "?") if isinstance(account, dict) else "?"
            self.logger.info(f"Forward-Email-Verbindung OK. Konto: {email}")
            return True
        except ForwardEmailError as e:
            self.logger.error(f"Forward-Email-Verbindung fehlgeschlagen: {e}")
            return False
