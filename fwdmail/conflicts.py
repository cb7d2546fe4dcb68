"""
Konfliktauflösung für die Alias-Synchronisierung.

Ein Konflikt liegt vor, wenn ein Alias-Name in beiden Domains existiert,
sich aber Empfänger, Status oder Labels unterscheiden. Hier liegt auch die
Vergleichsregel, damit Differ und Merge-Strategie immer übereinstimmen.
"""

import logging
from collections import Counter
from dataclasses import dataclass, replace
from typing import Dict, Iterable, Optional, Tuple

import click

from .exceptions import ConflictResolutionError
from .forwardemail_client import Alias

STRATEGIES = ("overwrite", "skip", "merge")

# Vorgabe, wenn keine Strategie gewählt wurde und nicht gefragt werden darf
DEFAULT_STRATEGY = {
    "merge": "merge",
    "replace": "overwrite",
    "preserve": "overwrite",
}


def normalize_value(value: str) -> str:
    """Normalisiert einen Wert (kleinschreiben, trimmen)."""
    return value.strip().lower()


def normalize_set(values: Iterable[str]) -> Counter:
    """
    Normalisiert eine Werteliste zu einer Multimenge.

    Reihenfolge spielt keine Rolle, Duplikate zählen mit.
    """
    return Counter(normalize_value(v) for v in values)


def values_equal(a: Iterable[str], b: Iterable[str]) -> bool:
    """Vergleicht zwei Wertelisten nach der Normalisierungsregel."""
    return normalize_set(a) == normalize_set(b)


def merge_values(a: Iterable[str], b: Iterable[str]) -> Tuple[str, ...]:
    """
    Vereinigung zweier Wertelisten ohne Duplikate.

    Duplikate werden nach der Normalisierungsregel erkannt, die erste
    Schreibweise bleibt erhalten (Webhook-Pfade sind case-sensitive).
    Sortiert wird nach dem normalisierten Wert.
    """
    merged: Dict[str, str] = {}
    for value in list(a) + list(b):
        merged.setdefault(normalize_value(value), value.strip())
    return tuple(merged[key] for key in sorted(merged))


def aliases_match(source: Alias, target: Alias) -> bool:
    """Prüft ob zwei Aliase bei Empfängern, Status und Labels übereinstimmen."""
    return (
        source.is_enabled == target.is_enabled
        and values_equal(source.recipients, target.recipients)
        and values_equal(source.labels, target.labels)
    )


@dataclass(frozen=True)
class ConflictDecision:
    """Entscheidung für einen Konflikt, optional für alle weiteren Konflikte."""

    strategy: str
    apply_to_all: bool = False


@dataclass(frozen=True)
class Resolution:
    """Gewünschte Zustände nach der Auflösung (None = Seite bleibt unverändert)."""

    strategy: str
    source_desired: Optional[Alias] = None
    target_desired: Optional[Alias] = None


class ConflictResolver:
    """Schnittstelle für die Entscheidung über einen einzelnen Konflikt."""

    # Interaktive Resolver werden im Trockenlauf nicht gefragt
    interactive = True

    def decide(self, name: str, source: Alias, target: Alias) -> ConflictDecision:
        raise NotImplementedError


class StrategyResolver(ConflictResolver):
    """Nicht-interaktiv: entscheidet immer mit derselben Strategie (--conflicts)."""

    interactive = False

    def __init__(self, strategy: str):
        if strategy not in STRATEGIES:
            raise ValueError(f"Ungültige Konfliktstrategie: {strategy}")
        self.strategy = strategy

    def decide(self, name: str, source: Alias, target: Alias) -> ConflictDecision:
        return ConflictDecision(self.strategy)


class InteractiveResolver(ConflictResolver):
    """
    Fragt im Terminal nach, wie ein Konflikt aufgelöst werden soll.

    [o] Ziel überschreiben, [s] überspringen, [m] zusammenführen,
    [a] letzte Wahl (sonst merge) für alle weiteren Konflikte übernehmen.
    """

    CHOICES = {"o": "overwrite", "s": "skip", "m": "merge"}

    def __init__(self):
        self._last_choice: Optional[str] = None

    def _describe(self, alias: Alias) -> str:
        labels = ", ".join(alias.labels) or "-"
        status = "aktiv" if alias.is_enabled else "deaktiviert"
        return f"{list(alias.recipients)} ({status}, Labels: {labels})"

    def decide(self, name: str, source: Alias, target: Alias) -> ConflictDecision:
        click.echo(f"Konflikt bei Alias '{name}':")
        click.echo(f"  Quelle → {self._describe(source)}")
        click.echo(f"  Ziel   → {self._describe(target)}")
        click.echo("Auswahl: [o] Ziel überschreiben, [s] überspringen, [m] zusammenführen, [a] für alle übernehmen")

        try:
            choice = click.prompt(
                "Auswahl",
                type=click.Choice(["o", "s", "m", "a"], case_sensitive=False),
                show_choices=True,
            )
        except click.Abort as e:
            raise ConflictResolutionError(f"Keine Eingabe für Konflikt bei '{name}'") from e

        choice = choice.lower()
        if choice == "a":
            return ConflictDecision(self._last_choice or "merge", apply_to_all=True)

        strategy = self.CHOICES[choice]
        self._last_choice = strategy
        return ConflictDecision(strategy)


class ConflictSession:
    """
    Konfliktauflösung für genau einen Sync-Lauf.

    Jede Entscheidung läuft über den Resolver. Eine explizite Strategie
    wird zu einem StrategyResolver. Wird eine Entscheidung "für alle"
    getroffen, gilt sie für alle weiteren Konflikte dieses Laufs.
    """

    def __init__(
        self,
        mode: str,
        strategy: Optional[str] = None,
        dry_run: bool = False,
        resolver: Optional[ConflictResolver] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.mode = mode
        self.dry_run = dry_run
        self.resolver = StrategyResolver(strategy) if strategy else resolver
        self.logger = logger or logging.getLogger("fwdmail.conflicts")
        # Per "für alle" gemerkte Strategie
        self.strategy: Optional[str] = None

    @property
    def default_strategy(self) -> str:
        return DEFAULT_STRATEGY[self.mode]

    def decide(self, name: str, source: Alias, target: Alias) -> str:
        """Ermittelt die Strategie für einen Konflikt."""
        if self.strategy:
            return self.strategy

        if self.resolver is None or (self.dry_run and self.resolver.interactive):
            # Trockenlauf darf nie auf Eingaben warten
            if self.dry_run:
                return self.default_strategy
            raise ConflictResolutionError(
                f"Konflikt bei '{name}', aber weder Strategie noch Resolver vorhanden"
            )

        decision = self.resolver.decide(name, source, target)
        if decision.strategy not in STRATEGIES:
            raise ConflictResolutionError(
                f"Ungültige Konfliktstrategie für '{name}': {decision.strategy}"
            )

        if decision.apply_to_all:
            self.logger.info(f"Strategie '{decision.strategy}' gilt für alle weiteren Konflikte")
            self.strategy = decision.strategy

        return decision.strategy

    def resolve(self, name: str, source: Alias, target: Alias) -> Resolution:
        """
        Löst einen Konflikt auf.

        Args:
            name: Alias-Name
            source: Alias in der Quelldomain
            target: Alias in der Zieldomain

        Returns:
            Resolution mit den gewünschten Zuständen beider Seiten
        """
        strategy = self.decide(name, source, target)
        self.logger.debug(f"Konflikt '{name}': Strategie {strategy}")

        if strategy == "skip":
            return Resolution(strategy)

        if strategy == "overwrite":
            # Quelle gewinnt, auch im bidirektionalen Modus
            desired = replace(
                target,
                recipients=source.recipients,
                is_enabled=source.is_enabled,
                labels=source.labels,
            )
            return Resolution(strategy, target_desired=desired)

        recipients = merge_values(source.recipients, target.recipients)
        labels = merge_values(source.labels, target.labels)

        if self.mode == "merge":
            enabled = source.is_enabled or target.is_enabled
            return Resolution(
                strategy,
                source_desired=replace(source, recipients=recipients, is_enabled=enabled, labels=labels),
                target_desired=replace(target, recipients=recipients, is_enabled=enabled, labels=labels),
            )

        return Resolution(
            strategy,
            target_desired=replace(
                target, recipients=recipients, is_enabled=source.is_enabled, labels=labels
            ),
        )
