"""
Export-Modul für Forward-Email Aliase.

Schreibt die Aliase einer Domain in eine CSV-Datei, z.B. als Sicherung
vor einem Sync-Lauf im Modus replace.
"""

import csv
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

CSV_HEADER = ["Name", "Recipients", "Enabled", "Labels", "Description"]


class AliasExporter:
    """
    Exportiert die Aliase einer Domain.
    """

    def __init__(self, directory, logger: Optional[logging.Logger] = None):
        """
        Initialisiert den Exporter.

        Args:
            directory: Alias-Verzeichnis, z.B. ForwardEmailClient
            logger: Optionaler Logger
        """
        self.directory = directory
        self.logger = logger or logging.getLogger("fwdmail.export")

    def export_aliases_csv(self, domain: str, output_path: Optional[Path] = None) -> Path:
        """
        Exportiert alle Aliase einer Domain in eine CSV-Datei.

        Empfänger und Labels werden kommagetrennt in eine Spalte geschrieben.

        Args:
            domain: Domain
            output_path: Optionaler Ausgabepfad

        Returns:
            Pfad zur erstellten Datei
        """
        if output_path is None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            output_path = Path(f"aliases_{domain}_{timestamp}.csv")

        self.logger.info(f"Rufe Aliase von {domain} ab...")
        aliases = self.directory.list_aliases(domain)

        with open(output_path, "w", encoding="utf-8", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(CSV_HEADER)

            for alias in sorted(aliases, key=lambda a: a.name):
                writer.writerow([
                    alias.name,
                    ",".join(alias.recipients),
                    str(alias.is_enabled).lower(),
                    ",".join(alias.labels),
                    alias.description,
                ])

        self.logger.info(f"✅ {len(aliases)} Aliase von {domain} exportiert nach: {output_path}")
        return output_path
