"""
Konfigurationsmodul für die Forward-Email Alias-Synchronisierung.

Lädt Einstellungen aus Umgebungsvariablen oder .env-Datei.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import colorlog
from dotenv import load_dotenv

DEFAULT_BASE_URL = "https://api.forwardemail.net"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Richtet das Logging ein."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    handler = colorlog.StreamHandler()
    handler.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s%(asctime)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
    )

    logger = logging.getLogger("fwdmail")
    logger.setLevel(log_level)
    # Handler früherer Aufrufe ersetzen, sonst doppelte Ausgaben
    for old in list(logger.handlers):
        logger.removeHandler(old)
    logger.addHandler(handler)

    return logger


@dataclass
class ForwardEmailConfig:
    """Konfiguration für die Forward Email API."""

    api_key: str
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 30.0  # Sekunden pro API-Aufruf
    alias_limit: int = 1000  # Seitengröße beim Abruf aller Aliase einer Domain
    user_agent: str = "fwdmail-sync"


@dataclass
class SyncConfig:
    """Gesamtkonfiguration."""

    forwardemail: ForwardEmailConfig
    log_level: str = "INFO"
    env_file: Optional[Path] = field(default=None, repr=False)

    @classmethod
    def from_env(cls, env_path: Optional[Path] = None) -> "SyncConfig":
        """
        Lädt die Konfiguration aus Umgebungsvariablen.

        Args:
            env_path: Optionaler Pfad zur .env-Datei

        Returns:
            SyncConfig-Instanz mit geladenen Werten

        Raises:
            ValueError: Wenn erforderliche Umgebungsvariablen fehlen oder ungültig sind
        """
        loaded_from = None
        if env_path:
            load_dotenv(env_path)
            loaded_from = Path(env_path)
        else:
            # .env im Arbeitsverzeichnis, Paketverzeichnis oder Projektwurzel suchen
            current_dir = Path(__file__).resolve().parent
            possible_paths = [
                Path.cwd() / ".env",
                current_dir / ".env",
                current_dir.parent / ".env",
            ]

            for env_file in possible_paths:
                if env_file.exists():
                    load_dotenv(env_file)
                    loaded_from = env_file
                    break
            else:
                load_dotenv()

        required_vars = ["FORWARDEMAIL_API_KEY"]

        missing = [var for var in required_vars if not os.getenv(var)]
        if missing:
            raise ValueError(
                f"Fehlende Umgebungsvariablen: {', '.join(missing)}\n"
                "Bitte .env-Datei anlegen (siehe .env.example)"
            )

        try:
            timeout = float(os.getenv("FORWARDEMAIL_TIMEOUT", "30"))
            alias_limit = int(os.getenv("FORWARDEMAIL_ALIAS_LIMIT", "1000"))
        except ValueError as e:
            raise ValueError(f"Ungültiger Zahlenwert in der Konfiguration: {e}") from e

        if timeout <= 0:
            raise ValueError("FORWARDEMAIL_TIMEOUT muss größer als 0 sein")
        if alias_limit <= 0:
            raise ValueError("FORWARDEMAIL_ALIAS_LIMIT muss größer als 0 sein")

        forwardemail = ForwardEmailConfig(
            api_key=os.getenv("FORWARDEMAIL_API_KEY", ""),
            base_url=os.getenv("FORWARDEMAIL_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
            timeout=timeout,
            alias_limit=alias_limit,
        )

        return cls(
            forwardemail=forwardemail,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            env_file=loaded_from,
        )


def load_config(env_path: Optional[Path] = None) -> SyncConfig:
    """
    Lädt und validiert die Konfiguration.

    Returns:
        Validierte SyncConfig-Instanz
    """
    return SyncConfig.from_env(env_path)
