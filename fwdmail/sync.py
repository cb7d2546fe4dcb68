"""
Synchronisierungsmodul für Forward-Email Aliase zwischen zwei Domains.

Ablauf: Aliase beider Domains abrufen, nach Namen indizieren, klassifizieren,
Konflikte auflösen, einen Plan aus Create/Update/Delete-Aktionen erstellen
und diesen entweder nur anzeigen (Trockenlauf) oder ausführen.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from .conflicts import STRATEGIES, ConflictResolver, ConflictSession, aliases_match
from .exceptions import AliasFetchError, SyncApplyError, SyncValidationError
from .forwardemail_client import Alias

SYNC_MODES = ("merge", "replace", "preserve")


@dataclass(frozen=True)
class SyncRequest:
    """Parameter eines Sync-Laufs."""

    source_domain: str
    target_domain: str
    mode: str = "merge"
    dry_run: bool = False
    conflict_strategy: Optional[str] = None

    @classmethod
    def create(
        cls,
        source_domain: str,
        target_domain: str,
        mode: str = "merge",
        dry_run: bool = False,
        conflict_strategy: Optional[str] = None,
    ) -> "SyncRequest":
        """
        Normalisiert und validiert die Eingaben.

        Domainnamen sind case-insensitiv und werden kleingeschrieben.

        Raises:
            SyncValidationError: Bei gleichen Domains, ungültigem Modus oder ungültiger Strategie
        """
        request = cls(
            source_domain=(source_domain or "").strip().lower(),
            target_domain=(target_domain or "").strip().lower(),
            mode=(mode or "").strip().lower(),
            dry_run=dry_run,
            conflict_strategy=(conflict_strategy or "").strip().lower() or None,
        )
        request.validate()
        return request

    def validate(self) -> None:
        if not self.source_domain or not self.target_domain:
            raise SyncValidationError("Quell- und Zieldomain sind erforderlich")
        if self.source_domain.lower() == self.target_domain.lower():
            raise SyncValidationError("Quell- und Zieldomain müssen sich unterscheiden")
        if self.mode not in SYNC_MODES:
            raise SyncValidationError(
                f"Ungültiger Modus: {self.mode} (gültig: {'|'.join(SYNC_MODES)})"
            )
        if self.conflict_strategy is not None and self.conflict_strategy not in STRATEGIES:
            raise SyncValidationError(
                f"Ungültige Konfliktstrategie: {self.conflict_strategy} (gültig: {'|'.join(STRATEGIES)})"
            )


@dataclass
class Classification:
    """Ergebnis des Vergleichs zweier Domains, nach Alias-Namen."""

    # Nur in der Quelle
    only_in_source: List[str]

    # Nur im Ziel
    only_in_target: List[str]

    # In beiden, identisch
    matching: List[str]

    # In beiden, unterschiedlich
    conflicting: List[str]

    @property
    def names(self) -> List[str]:
        """Alle Namen beider Domains, sortiert."""
        return sorted(self.only_in_source + self.only_in_target + self.matching + self.conflicting)

    @property
    def has_differences(self) -> bool:
        return bool(self.only_in_source or self.only_in_target or self.conflicting)

    @property
    def summary(self) -> str:
        return (
            f"Nur Quelle: {len(self.only_in_source)} | "
            f"Nur Ziel: {len(self.only_in_target)} | "
            f"Identisch: {len(self.matching)} | "
            f"Konflikte: {len(self.conflicting)}"
        )


@dataclass(frozen=True)
class SyncAction:
    """Basisklasse aller Plan-Aktionen."""

    type: str
    domain: str
    name: str


@dataclass(frozen=True)
class CreateAction(SyncAction):
    """Alias in einer Domain anlegen."""

    alias: Alias
    type: str = field(default="create", init=False)


@dataclass(frozen=True)
class UpdateAction(SyncAction):
    """Empfänger, Status und Labels eines bestehenden Alias setzen."""

    alias_id: str
    recipients: Tuple[str, ...]
    enabled: bool
    labels: Tuple[str, ...]
    type: str = field(default="update", init=False)


@dataclass(frozen=True)
class DeleteAction(SyncAction):
    """Alias aus einer Domain entfernen."""

    alias_id: str
    type: str = field(default="delete", init=False)


@dataclass
class SyncResult:
    """Ergebnis eines Sync-Laufs."""

    request: SyncRequest
    classification: Classification
    plan: List[SyncAction]
    applied: int = 0
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def dry_run(self) -> bool:
        return self.request.dry_run


def index_aliases(aliases: Iterable[Alias]) -> Dict[str, Alias]:
    """
    Baut einen Index Name -> Alias.

    Bei doppelten Namen gewinnt der spätere Eintrag.
    """
    index: Dict[str, Alias] = {}
    for alias in aliases:
        if alias.name in index:
            logging.getLogger("fwdmail.sync").debug(f"Doppelter Alias-Name '{alias.name}', späterer Eintrag gewinnt")
        index[alias.name] = alias
    return index


def classify(source_index: Dict[str, Alias], target_index: Dict[str, Alias]) -> Classification:
    """Ordnet jeden Alias-Namen genau einer der vier Gruppen zu."""
    only_in_source = sorted(set(source_index) - set(target_index))
    only_in_target = sorted(set(target_index) - set(source_index))

    matching: List[str] = []
    conflicting: List[str] = []
    for name in sorted(set(source_index) & set(target_index)):
        if aliases_match(source_index[name], target_index[name]):
            matching.append(name)
        else:
            conflicting.append(name)

    return Classification(
        only_in_source=only_in_source,
        only_in_target=only_in_target,
        matching=matching,
        conflicting=conflicting,
    )


def _update_if_changed(plan: List[SyncAction], domain: str, current: Alias, desired: Optional[Alias]) -> None:
    if desired is None or aliases_match(current, desired):
        return
    plan.append(
        UpdateAction(
            domain=domain,
            name=current.name,
            alias_id=current.id,
            recipients=tuple(desired.recipients),
            enabled=desired.is_enabled,
            labels=tuple(desired.labels),
        )
    )


def build_plan(
    request: SyncRequest,
    classification: Classification,
    source_index: Dict[str, Alias],
    target_index: Dict[str, Alias],
    session: ConflictSession,
) -> List[SyncAction]:
    """
    Erstellt den Sync-Plan für den gewählten Modus.

    merge:    Anlegen in beide Richtungen, Konflikte auflösen, nie löschen.
    replace:  Ziel wird exakte Kopie der Quelle (inkl. Löschen).
    preserve: wie replace, aber ohne Löschen im Ziel.

    Namen werden sortiert abgearbeitet, der Plan ist damit reproduzierbar.
    """
    source, target = request.source_domain, request.target_domain
    only_in_source = set(classification.only_in_source)
    only_in_target = set(classification.only_in_target)
    conflicting = set(classification.conflicting)

    plan: List[SyncAction] = []

    for name in classification.names:
        if name in only_in_source:
            plan.append(CreateAction(domain=target, name=name, alias=source_index[name]))

        elif name in only_in_target:
            alias = target_index[name]
            if request.mode == "merge":
                plan.append(CreateAction(domain=source, name=name, alias=alias))
            elif request.mode == "replace":
                plan.append(DeleteAction(domain=target, name=name, alias_id=alias.id))

        elif name in conflicting:
            src_alias, dst_alias = source_index[name], target_index[name]
            resolution = session.resolve(name, src_alias, dst_alias)
            _update_if_changed(plan, source, src_alias, resolution.source_desired)
            _update_if_changed(plan, target, dst_alias, resolution.target_desired)

    return plan


def apply_plan(plan: List[SyncAction], directory, logger: Optional[logging.Logger] = None) -> int:
    """
    Führt den Plan Aktion für Aktion aus.

    Beim ersten Fehler wird abgebrochen. Bereits ausgeführte Aktionen
    bleiben bestehen.

    Returns:
        Anzahl ausgeführter Aktionen

    Raises:
        SyncApplyError: Mit Aktion, Domain, Alias und Fortschritt
    """
    logger = logger or logging.getLogger("fwdmail.sync")
    total = len(plan)
    applied = 0

    for action in plan:
        try:
            if isinstance(action, CreateAction):
                directory.create_alias(action.domain, action.alias)
            elif isinstance(action, UpdateAction):
                directory.update_alias(
                    action.domain,
                    action.alias_id,
                    recipients=list(action.recipients),
                    enabled=action.enabled,
                    labels=list(action.labels),
                )
            elif isinstance(action, DeleteAction):
                directory.delete_alias(action.domain, action.alias_id)
            else:
                raise TypeError(f"Unbekannte Aktion: {action!r}")
        except Exception as e:
            raise SyncApplyError(action.type, action.domain, action.name, applied, total, e) from e

        applied += 1
        logger.info(f"✅ {action.type} {action.name}@{action.domain}")

    return applied


class AliasSynchronizer:
    """
    Hauptklasse für die Alias-Synchronisierung.

    Orchestriert Abruf, Vergleich, Planung und Ausführung.
    """

    def __init__(
        self,
        directory,
        resolver: Optional[ConflictResolver] = None,
        reporter=None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialisiert den Synchronisierer.

        Args:
            directory: Alias-Verzeichnis (list/create/update/delete_alias), z.B. ForwardEmailClient
            resolver: Optionale interaktive Konfliktauflösung
            reporter: Optionaler PlanReporter für Trockenlauf und Zusammenfassung
            logger: Optionaler Logger
        """
        self.directory = directory
        self.resolver = resolver
        self.reporter = reporter
        self.logger = logger or logging.getLogger("fwdmail.sync")

    def fetch(self, domain: str) -> List[Alias]:
        """Ruft alle Aliase einer Domain ab."""
        self.logger.info(f"Rufe Aliase von {domain} ab...")
        try:
            aliases = self.directory.list_aliases(domain)
        except Exception as e:
            raise AliasFetchError(domain, e) from e
        self.logger.info(f"{domain}: {len(aliases)} Aliase")
        return aliases

    def compare(self, request: SyncRequest) -> Tuple[Classification, Dict[str, Alias], Dict[str, Alias]]:
        """
        Vergleicht die Aliase von Quelle und Ziel.

        Quelle und Ziel werden nacheinander abgerufen.
        """
        source_index = index_aliases(self.fetch(request.source_domain))
        target_index = index_aliases(self.fetch(request.target_domain))

        classification = classify(source_index, target_index)
        self.logger.info(classification.summary)
        return classification, source_index, target_index

    def sync(self, request: SyncRequest) -> SyncResult:
        """
        Führt die Synchronisierung durch.

        Bei dry_run=True wird der Plan nur angezeigt.

        Returns:
            SyncResult mit Plan und Anzahl ausgeführter Aktionen
        """
        request.validate()

        self.logger.info("=" * 60)
        self.logger.info(
            f"Alias-Synchronisierung {request.source_domain} -> {request.target_domain} (Modus: {request.mode})"
        )
        self.logger.info("=" * 60)

        if request.dry_run:
            self.logger.warning("TROCKENLAUF - Keine Änderungen werden vorgenommen!")

        classification, source_index, target_index = self.compare(request)

        session = ConflictSession(
            mode=request.mode,
            strategy=request.conflict_strategy,
            dry_run=request.dry_run,
            resolver=self.resolver,
            logger=self.logger,
        )
        if classification.has_differences:
            plan = build_plan(request, classification, source_index, target_index, session)
        else:
            plan = []
        result = SyncResult(request=request, classification=classification, plan=plan)

        if request.dry_run:
            if self.reporter:
                self.reporter.report(request.source_domain, request.target_domain, plan)
            return result

        if not plan:
            self.logger.info("Keine Änderungen erforderlich - bereits synchron!")
        else:
            self.logger.info(f"Führe {len(plan)} Aktionen aus...")
            result.applied = apply_plan(plan, self.directory, self.logger)

        if self.reporter:
            self.reporter.summary(result)
        return result
