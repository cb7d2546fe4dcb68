#!/usr/bin/env python3
"""
Forward-Email Alias-Synchronisierung CLI

Gleicht die Aliase (Weiterleitungen) zweier Domains bei Forward Email ab.
"""

import sys
from pathlib import Path
from typing import Callable, List, Optional

import click

from .config import load_config, setup_logging, SyncConfig
from .conflicts import STRATEGIES
from .exceptions import FwdMailError, SyncApplyError
from .sync import SYNC_MODES


@click.group(invoke_without_command=True)
@click.option("--debug", is_flag=True, help="Debug-Ausgaben aktivieren")
@click.option(
    "--env",
    type=click.Path(exists=True, path_type=Path),
    help="Pfad zur .env Datei",
)
@click.pass_context
def cli(ctx: click.Context, debug: bool, env: Optional[Path]) -> None:
    """
    Forward Email Alias-Synchronisierung.

    Vergleicht die Aliase zweier Domains und gleicht sie ab.

    \b
    Beispiele:
      fwdmail sync a.com b.com --dry-run             # Plan anzeigen
      fwdmail sync a.com b.com --mode replace        # b.com wird Kopie von a.com
      fwdmail sync a.com b.com --conflicts merge     # Konflikte zusammenführen
      fwdmail export a.com -o aliases.csv            # Aliase als CSV sichern
      fwdmail alias list a.com                       # Aliase anzeigen
      fwdmail test                                   # Verbindung testen
    """
    ctx.ensure_object(dict)

    try:
        config = load_config(env)
    except ValueError as e:
        click.secho(f"Fehler beim Laden der Konfiguration: {e}", fg="red", err=True)
        ctx.exit(1)

    log_level = "DEBUG" if debug else config.log_level
    logger = setup_logging(log_level)
    if config.env_file:
        logger.debug(f"Konfiguration geladen aus {config.env_file}")

    ctx.obj["config"] = config
    ctx.obj["logger"] = logger
    ctx.obj["debug"] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.argument("source_domain")
@click.argument("target_domain")
@click.option(
    "--mode",
    type=click.Choice(SYNC_MODES, case_sensitive=False),
    default="merge",
    show_default=True,
    help="merge: beidseitig, replace: Ziel = Quelle, preserve: Quelle ins Ziel ohne Löschen",
)
@click.option("--dry-run", is_flag=True, help="Plan nur anzeigen, keine Änderungen durchführen")
@click.option(
    "--conflicts",
    "conflict_strategy",
    type=click.Choice(STRATEGIES, case_sensitive=False),
    default=None,
    help="Konfliktstrategie (ohne Angabe wird interaktiv gefragt)",
)
@click.pass_context
def sync(
    ctx: click.Context,
    source_domain: str,
    target_domain: str,
    mode: str,
    dry_run: bool,
    conflict_strategy: Optional[str],
) -> None:
    """
    Synchronisiert die Aliase von SOURCE_DOMAIN mit TARGET_DOMAIN.

    Ohne --conflicts wird bei jedem Konflikt nachgefragt, im Trockenlauf
    gilt die Vorgabe des Modus.
    """
    from .conflicts import InteractiveResolver, StrategyResolver
    from .forwardemail_client import ForwardEmailClient
    from .report import PlanReporter
    from .sync import AliasSynchronizer, SyncRequest

    config: SyncConfig = ctx.obj["config"]
    logger = ctx.obj["logger"]

    try:
        request = SyncRequest.create(source_domain, target_domain, mode, dry_run, conflict_strategy)
    except FwdMailError as e:
        logger.error(str(e))
        ctx.exit(1)

    if request.conflict_strategy:
        resolver = StrategyResolver(request.conflict_strategy)
    else:
        resolver = InteractiveResolver()

    client = ForwardEmailClient(config.forwardemail, logger)
    synchronizer = AliasSynchronizer(
        client,
        resolver=resolver,
        reporter=PlanReporter(),
        logger=logger,
    )

    try:
        result = synchronizer.sync(request)
    except SyncApplyError as e:
        logger.error(f"Synchronisierung fehlgeschlagen: {e}")
        logger.info("Nach Behebung der Ursache kann sync erneut ausgeführt werden")
        ctx.exit(1)
    except FwdMailError as e:
        logger.error(f"Synchronisierung fehlgeschlagen: {e}")
        ctx.exit(1)
    finally:
        client.close()

    if result.dry_run and result.plan:
        logger.info("Trockenlauf abgeschlossen. Ohne --dry-run ausführen, um die Änderungen durchzuführen.")


@cli.command()
@click.argument("domain")
@click.option(
    "-o",
    "--output",
    type=click.Path(path_type=Path),
    help="Ausgabedatei für Export",
)
@click.pass_context
def export(ctx: click.Context, domain: str, output: Optional[Path]) -> None:
    """Exportiert die Aliase einer Domain als CSV."""
    from .export import AliasExporter
    from .forwardemail_client import ForwardEmailClient

    config: SyncConfig = ctx.obj["config"]
    logger = ctx.obj["logger"]

    client = ForwardEmailClient(config.forwardemail, logger)
    exporter = AliasExporter(client, logger)

    try:
        exporter.export_aliases_csv(domain, output)
    except (FwdMailError, ValueError, OSError) as e:
        logger.error(f"Export fehlgeschlagen: {e}")
        ctx.exit(1)
    finally:
        client.close()


def _split_values(value: Optional[str]) -> Optional[List[str]]:
    """Zerlegt eine kommagetrennte Option, None bleibt None (= nicht ändern)."""
    if value is None:
        return None
    return [v.strip() for v in value.split(",") if v.strip()]


def _with_client(ctx: click.Context, description: str, func: Callable):
    """Führt func(client) aus, meldet Fehler und schließt den Client."""
    from .forwardemail_client import ForwardEmailClient

    config: SyncConfig = ctx.obj["config"]
    logger = ctx.obj["logger"]

    client = ForwardEmailClient(config.forwardemail, logger)
    try:
        return func(client)
    except (FwdMailError, ValueError) as e:
        logger.error(f"{description} fehlgeschlagen: {e}")
        ctx.exit(1)
    finally:
        client.close()


@cli.group()
def alias() -> None:
    """
    Verwaltet einzelne Aliase einer Domain.

    \b
    Beispiele:
      fwdmail alias list a.com --search sales
      fwdmail alias create a.com sales --recipients a@x.com,b@x.com
      fwdmail alias update a.com <ID> --labels team,vertrieb
      fwdmail alias disable a.com <ID>
      fwdmail alias delete a.com <ID> --yes
    """


@alias.command("list")
@click.argument("domain")
@click.option("--search", help="Nur Aliase, deren Name den Text enthält")
@click.option("--enabled/--disabled", "enabled", default=None, help="Nach Status filtern")
@click.pass_context
def list_aliases(ctx: click.Context, domain: str, search: Optional[str], enabled: Optional[bool]) -> None:
    """Listet die Aliase von DOMAIN."""
    from rich.console import Console

    from .report import build_alias_table

    aliases = _with_client(ctx, "Abruf", lambda client: client.list_aliases(domain))

    if search:
        aliases = [a for a in aliases if search.lower() in a.name.lower()]
    if enabled is not None:
        aliases = [a for a in aliases if a.is_enabled == enabled]

    if not aliases:
        click.echo("Keine Aliase gefunden.")
        return

    aliases = sorted(aliases, key=lambda a: a.name)
    Console().print(build_alias_table(aliases, title=f"Aliase von {domain} ({len(aliases)})"))


@alias.command("create")
@click.argument("domain")
@click.argument("name")
@click.option("--recipients", required=True, help="Empfänger, kommagetrennt")
@click.option("--labels", help="Labels, kommagetrennt")
@click.option("--description", default="", help="Beschreibung")
@click.option("--disabled", is_flag=True, help="Alias deaktiviert anlegen")
@click.pass_context
def create_alias(
    ctx: click.Context,
    domain: str,
    name: str,
    recipients: str,
    labels: Optional[str],
    description: str,
    disabled: bool,
) -> None:
    """Legt den Alias NAME in DOMAIN an."""
    from .forwardemail_client import Alias

    new_alias = Alias(
        id="",
        name=name.strip(),
        recipients=tuple(_split_values(recipients)),
        is_enabled=not disabled,
        labels=tuple(_split_values(labels) or ()),
        description=description,
    )
    created = _with_client(ctx, "Anlegen", lambda client: client.create_alias(domain, new_alias))
    ctx.obj["logger"].info(f"✅ Alias '{created.name}' in {domain} angelegt (ID: {created.id})")


@alias.command("update")
@click.argument("domain")
@click.argument("alias_id")
@click.option("--recipients", help="Neue Empfänger, kommagetrennt")
@click.option("--labels", help="Neue Labels, kommagetrennt (leer = alle entfernen)")
@click.option("--description", help="Neue Beschreibung")
@click.option("--enable/--disable", "enabled", default=None, help="Alias aktivieren oder deaktivieren")
@click.pass_context
def update_alias(
    ctx: click.Context,
    domain: str,
    alias_id: str,
    recipients: Optional[str],
    labels: Optional[str],
    description: Optional[str],
    enabled: Optional[bool],
) -> None:
    """Ändert den Alias ALIAS_ID in DOMAIN."""
    logger = ctx.obj["logger"]

    if recipients is None and labels is None and description is None and enabled is None:
        logger.error("Keine Änderungen angegeben (--recipients, --labels, --description, --enable/--disable)")
        ctx.exit(1)

    _with_client(
        ctx,
        "Aktualisierung",
        lambda client: client.update_alias(
            domain,
            alias_id,
            recipients=_split_values(recipients),
            enabled=enabled,
            labels=_split_values(labels),
            description=description,
        ),
    )
    logger.info(f"✅ Alias {alias_id} in {domain} aktualisiert")


@alias.command("delete")
@click.argument("domain")
@click.argument("alias_id")
@click.option("--yes", "-y", is_flag=True, help="Ohne Rückfrage löschen")
@click.pass_context
def delete_alias(ctx: click.Context, domain: str, alias_id: str, yes: bool) -> None:
    """Löscht den Alias ALIAS_ID aus DOMAIN."""
    logger = ctx.obj["logger"]

    existing = _with_client(ctx, "Abruf", lambda client: client.get_alias(domain, alias_id))
    if not yes and not click.confirm(
        f"⚠️  Alias '{existing.name}' wirklich löschen? Das kann nicht rückgängig gemacht werden"
    ):
        click.echo("❌ Löschen abgebrochen")
        return

    _with_client(ctx, "Löschen", lambda client: client.delete_alias(domain, alias_id))
    logger.info(f"✅ Alias '{existing.name}' gelöscht")


def _set_enabled(ctx: click.Context, domain: str, alias_id: str, enabled: bool) -> None:
    _with_client(
        ctx,
        "Aktivieren" if enabled else "Deaktivieren",
        lambda client: client.update_alias(domain, alias_id, enabled=enabled),
    )
    status = "aktiviert" if enabled else "deaktiviert"
    ctx.obj["logger"].info(f"✅ Alias {alias_id} in {domain} {status}")


@alias.command("enable")
@click.argument("domain")
@click.argument("alias_id")
@click.pass_context
def enable_alias(ctx: click.Context, domain: str, alias_id: str) -> None:
    """Aktiviert den Alias ALIAS_ID."""
    _set_enabled(ctx, domain, alias_id, True)


@alias.command("disable")
@click.argument("domain")
@click.argument("alias_id")
@click.pass_context
def disable_alias(ctx: click.Context, domain: str, alias_id: str) -> None:
    """Deaktiviert den Alias ALIAS_ID."""
    _set_enabled(ctx, domain, alias_id, False)


@cli.command()
@click.pass_context
def test(ctx: click.Context) -> None:
    """Testet die Verbindung zur Forward Email API."""
    from .forwardemail_client import ForwardEmailClient

    config: SyncConfig = ctx.obj["config"]
    logger = ctx.obj["logger"]

    logger.info("Teste Forward-Email-Verbindung...")
    client = ForwardEmailClient(config.forwardemail, logger)
    try:
        ok = client.test_connection()
    finally:
        client.close()

    if ok:
        logger.info("✅ Forward Email: OK")
    else:
        logger.error("❌ Forward Email: FEHLGESCHLAGEN")
        ctx.exit(1)


def main() -> int:
    """Entry point für direkten Aufruf."""
    try:
        cli(obj={})
        return 0
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else 1


if __name__ == "__main__":
    sys.exit(main())
