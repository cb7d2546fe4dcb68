"""
Ausgabe von Sync-Plänen und Zusammenfassungen.
"""

from typing import Optional, Sequence, TextIO

from rich.console import Console
from rich.table import Table
from rich.text import Text

HEADERS = ("ACTION", "DOMAIN", "ALIAS", "DETAILS")


def _format_details(action) -> str:
    if action.type == "delete":
        return "Alias entfernen"
    if action.type == "create":
        recipients, enabled = action.alias.recipients, action.alias.is_enabled
    else:
        recipients, enabled = action.recipients, action.enabled
    return f"recipients=[{', '.join(recipients)}] enabled={str(enabled).lower()}"


def build_plan_table(plan: Sequence) -> Table:
    """Baut die Tabelle ACTION | DOMAIN | ALIAS | DETAILS für einen Plan."""
    table = Table()
    table.add_column(HEADERS[0], style="cyan", no_wrap=True)
    table.add_column(HEADERS[1], no_wrap=True)
    table.add_column(HEADERS[2], no_wrap=True)
    table.add_column(HEADERS[3], overflow="fold")

    # Empfänger wie [a@x.com] dürfen nicht als Rich-Markup gelesen werden
    for action in plan:
        cells = (action.type.upper(), action.domain, action.name, _format_details(action))
        table.add_row(*(Text(cell) for cell in cells))
    return table


def build_alias_table(aliases: Sequence, title: Optional[str] = None) -> Table:
    """Baut eine Übersichtstabelle für die Aliase einer Domain."""
    table = Table(title=title)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Recipients", overflow="fold")
    table.add_column("Enabled", no_wrap=True)
    table.add_column("Labels", overflow="fold")

    for alias in aliases:
        cells = (
            alias.id,
            alias.name,
            ", ".join(alias.recipients),
            "ja" if alias.is_enabled else "nein",
            ", ".join(alias.labels),
        )
        table.add_row(*(Text(cell) for cell in cells))
    return table


class PlanReporter:
    """Gibt Sync-Pläne als Tabelle aus."""

    def __init__(self, stream: Optional[TextIO] = None, console: Optional[Console] = None):
        self.console = console or Console(file=stream)

    def _print(self, text: str = "") -> None:
        self.console.print(text, markup=False, highlight=False, soft_wrap=True)

    def report(self, source_domain: str, target_domain: str, plan: Sequence) -> None:
        """Zeigt den geplanten Ablauf eines Trockenlaufs an."""
        self._print(f"TROCKENLAUF: Alias-Sync-Plan ({source_domain} -> {target_domain}, Aktionen={len(plan)})")
        self._print()

        if not plan:
            self._print("✨ Perfekt synchron! Keine Änderungen nötig.")
            return

        self.console.print(build_plan_table(plan))

    def summary(self, result) -> None:
        """Gibt die Abschlusszeile nach der Ausführung aus."""
        request = result.request
        self._print(
            f"Alias-Sync abgeschlossen: {request.source_domain} -> {request.target_domain} "
            f"(Modus={request.mode}, Aktionen={result.applied})"
        )
