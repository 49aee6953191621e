#!/usr/bin/env python3
"""homewatch - Smart-home telemetry alerting CLI."""
import sys
import json
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

import click
from rich.console import Console
from rich.table import Table

from __version__ import __version__
from models.enums import Role

console = Console()

LEVEL_STYLES = {"critical": "bold white on red", "warning": "bold yellow", "info": "bold blue"}


def _init_components(config_path=None, verbose=False):
    """Lazy initialization of all components."""
    from utils.logger import setup_logging
    from utils.cache import build_cache
    from config import load_config
    from models.database import Database
    from alerts.engine import AlertEngine
    from alerts.rule_cache import RuleCache
    from alerts.rules_manager import RulesManager
    from alerts.channels import build_live_channel
    from ingest.service import ReadingIngestor

    config = load_config(config_path)
    setup_logging("DEBUG" if verbose else config["logging"]["level"], config["logging"].get("file"))

    db = Database(config["database"]["path"])
    db.connect()

    rule_cache = RuleCache(
        db,
        build_cache(config),
        ttl=config["cache"]["rules_ttl"],
        key_prefix=config["cache"]["key_prefix"],
    )
    engine = AlertEngine(db, rule_cache)

    return {
        "config": config,
        "db": db,
        "engine": engine,
        "rules": RulesManager(db),
        "ingestor": ReadingIngestor(db, engine),
        "live": build_live_channel(config),
    }


@click.group()
@click.option("--config", "config_path", default=None, help="Path to config YAML")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(__version__, prog_name="homewatch")
@click.pass_context
def cli(ctx, config_path, verbose):
    """homewatch - Smart-home telemetry, threshold rules & live alerts."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


def _get_components(ctx):
    if "_components" not in ctx.obj:
        ctx.obj["_components"] = _init_components(ctx.obj.get("config_path"), ctx.obj.get("verbose"))
    return ctx.obj["_components"]


def _level(level):
    style = LEVEL_STYLES.get(level, "")
    return f"[{style}]{level}[/]" if style else level


# ──────────────────────────────────────────────────────
# SETUP
# ──────────────────────────────────────────────────────
@cli.command()
@click.pass_context
def setup(ctx):
    """Initialize the database."""
    c = _get_components(ctx)
    console.print(f"[green]✓[/green] Database ready at {c['config']['database']['path']}")


@cli.command()
@click.option("--username", default="demo", help="Owner of the demo device")
@click.option("--role", type=click.Choice([r.value for r in Role]), default=Role.RESIDENT.value,
              show_default=True, help="Role of the demo user")
@click.pass_context
def seed(ctx, username, role):
    """Create a demo user, device, Temperature metric and two rules."""
    c = _get_components(ctx)
    db = c["db"]
    user = db.create_user(username, role=role)
    device = db.create_device("Living Room Sensor", user.id, location="Living room", type="thermostat")
    metric = db.create_metric(device.id, "Temperature", "°C")
    c["rules"].create({
        "metric_id": metric.id, "condition": ">", "threshold": 30, "level": "critical",
        "message_template": "{metricName} is {value}, exceeding {threshold}",
    })
    c["rules"].create({
        "metric_id": metric.id, "condition": ">", "threshold": 26, "level": "warning",
        "message_template": "{metricName} is getting warm: {value}",
    })
    console.print(f"[green]✓[/green] User    {user.username} ({user.id}, {user.role})")
    console.print(f"[green]✓[/green] Device  {device.name} ({device.id})")
    console.print(f"[green]✓[/green] Metric  {metric.name} ({metric.id})")
    console.print(f"\nTry: [bold]homewatch readings ingest --metric {metric.id} --value 35.5[/bold]")


# ──────────────────────────────────────────────────────
# RULES
# ──────────────────────────────────────────────────────
@cli.group()
def rules():
    """Alert rule management."""
    pass


@rules.command("list")
@click.option("--metric", "metric_id", default=None, help="Only rules of this metric")
@click.pass_context
def rules_list(ctx, metric_id):
    """List configured alert rules."""
    c = _get_components(ctx)
    found = c["rules"].list(metric_id)
    if not found:
        console.print("[dim]No alert rules configured[/dim]")
        return
    table = Table(title="Alert Rules", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Metric", style="dim")
    table.add_column("Condition")
    table.add_column("Level")
    table.add_column("Template")
    for r in found:
        table.add_row(r.id, r.metric_id, f"{r.condition} {r.threshold}", _level(r.level),
                      r.message_template[:50])
    console.print(table)


@rules.command("add")
@click.option("--metric", "metric_id", required=True, help="Metric ID")
@click.option("--condition", required=True, type=click.Choice([">", "<", ">=", "<=", "==", "!="]))
@click.option("--threshold", required=True, type=float)
@click.option("--level", default="warning", type=click.Choice(["info", "warning", "critical"]))
@click.option("--template", "message_template", default="{metricName} is {value} (threshold {threshold})",
              help="Message template with {metricName}, {value}, {threshold}")
@click.pass_context
def rules_add(ctx, metric_id, condition, threshold, level, message_template):
    """Add an alert rule to a metric."""
    from alerts.rules_manager import RuleValidationError
    from models.database import NotFoundError

    c = _get_components(ctx)
    try:
        rule = c["rules"].create({
            "metric_id": metric_id, "condition": condition, "threshold": threshold,
            "level": level, "message_template": message_template,
        })
    except (RuleValidationError, NotFoundError) as e:
        console.print(f"[red]✗[/red] {e}")
        ctx.exit(1)
    console.print(f"[green]✓[/green] Created rule {rule.id}")


@rules.command("delete")
@click.argument("rule_id")
@click.pass_context
def rules_delete(ctx, rule_id):
    """Delete an alert rule."""
    from models.database import NotFoundError

    c = _get_components(ctx)
    try:
        c["rules"].delete(rule_id)
    except NotFoundError as e:
        console.print(f"[red]✗[/red] {e}")
        ctx.exit(1)
    console.print(f"[green]✓[/green] Deleted rule {rule_id}")


@rules.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--metric", "metric_id", default=None, help="Metric for entries without metric_id")
@click.pass_context
def rules_import(ctx, path, metric_id):
    """Import rules from a YAML file."""
    c = _get_components(ctx)
    created = c["rules"].import_file(path, default_metric_id=metric_id)
    console.print(f"[green]✓[/green] Imported {len(created)} rule(s)")


@rules.command("test")
@click.option("--metric", "metric_id", required=True, help="Metric ID")
@click.option("--value", required=True, type=float, help="Hypothetical reading value")
@click.pass_context
def rules_test(ctx, metric_id, value):
    """Show which rules a value would fire, without storing anything."""
    c = _get_components(ctx)
    results = c["engine"].test_rules(metric_id, value)
    table = Table(title=f"Rules Test (value={value})", show_header=True)
    table.add_column("Rule", style="dim")
    table.add_column("Condition")
    table.add_column("Level")
    table.add_column("Would Fire")
    table.add_column("Message")
    for r in results:
        fire_str = "[green]YES[/green]" if r["would_fire"] else "[dim]no[/dim]"
        table.add_row(r["rule_id"], f"{r['condition']} {r['threshold']}", _level(r["level"]),
                      fire_str, r["message"] or "")
    console.print(table)


# ──────────────────────────────────────────────────────
# READINGS
# ──────────────────────────────────────────────────────
@cli.group()
def readings():
    """Reading ingestion."""
    pass


@readings.command("ingest")
@click.option("--metric", "metric_id", default=None, help="Metric ID for a single reading")
@click.option("--value", default=None, type=float, help="Reading value")
@click.option("--file", "batch_file", default=None, type=click.Path(exists=True, dir_okay=False),
              help="JSON file with a list of {metric_id, value, timestamp} readings")
@click.option("--no-push", is_flag=True, help="Evaluate without publishing live notifications")
@click.pass_context
def readings_ingest(ctx, metric_id, value, batch_file, no_push):
    """Store readings and evaluate alert rules for each."""
    c = _get_components(ctx)
    if batch_file:
        with open(batch_file) as f:
            batch = json.load(f)
    elif metric_id and value is not None:
        batch = [{"metric_id": metric_id, "value": value}]
    else:
        raise click.UsageError("Give --metric and --value, or --file")

    result = c["ingestor"].ingest(batch, notifier=None if no_push else c["live"])
    console.print(f"Accepted [bold]{result.accepted}[/bold], rejected [bold]{result.rejected}[/bold]")
    if result.alerts:
        console.print(f"[bold yellow]{len(result.alerts)} alert(s) triggered:[/bold yellow]")
        for a in result.alerts:
            console.print(f"  [{_level(a.level)}] {a.message}")
    else:
        console.print("[green]All clear - no alerts triggered[/green]")


# ──────────────────────────────────────────────────────
# ALERTS
# ──────────────────────────────────────────────────────
@cli.group()
def alerts():
    """Alert history and status."""
    pass


@alerts.command("list")
@click.option("--owner", "owner_id", default=None, help="Only alerts on this user's devices")
@click.option("--status", default=None, type=click.Choice(["new", "acknowledged", "closed"]))
@click.option("--level", default=None, type=click.Choice(["info", "warning", "critical"]))
@click.option("--limit", default=50, type=int)
@click.pass_context
def alerts_list(ctx, owner_id, status, level, limit):
    """Show recent alerts."""
    c = _get_components(ctx)
    recent = c["db"].list_alerts(owner_id=owner_id, level=level, status=status, limit=limit)
    if not recent:
        console.print("[dim]No alerts in history[/dim]")
        return
    table = Table(title="Alerts", show_header=True)
    table.add_column("Time", style="dim")
    table.add_column("ID", style="dim")
    table.add_column("Level")
    table.add_column("Status")
    table.add_column("Message")
    for a in recent:
        table.add_row(a.created_at.isoformat()[:16], a.id, _level(a.level), a.status, a.message[:60])
    console.print(table)


@alerts.command("ack")
@click.argument("alert_id")
@click.pass_context
def alerts_ack(ctx, alert_id):
    """Acknowledge a new alert."""
    _transition(ctx, alert_id, "acknowledge_alert", "Acknowledged")


@alerts.command("close")
@click.argument("alert_id")
@click.pass_context
def alerts_close(ctx, alert_id):
    """Close an alert."""
    _transition(ctx, alert_id, "close_alert", "Closed")


def _transition(ctx, alert_id, method, label):
    from models.database import InvalidTransitionError, NotFoundError

    c = _get_components(ctx)
    try:
        getattr(c["db"], method)(alert_id)
    except (NotFoundError, InvalidTransitionError) as e:
        console.print(f"[red]✗[/red] {e}")
        ctx.exit(1)
    console.print(f"[green]✓[/green] {label} alert {alert_id}")


@alerts.command("stats")
@click.option("--owner", "owner_id", default=None, help="Count open alerts for this user only")
@click.pass_context
def alerts_stats(ctx, owner_id):
    """Alert counts per level and open alerts."""
    c = _get_components(ctx)
    stats = c["db"].get_alert_stats()
    table = Table(title="Alert Stats", show_header=True)
    table.add_column("Level")
    table.add_column("Count", justify="right")
    for level in ("critical", "warning", "info"):
        table.add_row(_level(level), str(stats.get(level, 0)))
    console.print(table)
    console.print(f"Open alerts: [bold]{c['db'].count_open_alerts(owner_id)}[/bold]")


# ──────────────────────────────────────────────────────
# WEB
# ──────────────────────────────────────────────────────
@cli.command()
@click.option("--port", default=None, type=int, help="Port to bind to")
@click.option("--host", default=None, type=str, help="Host to bind to")
@click.pass_context
def web(ctx, port, host):
    """Launch the HTTP API."""
    from web.app import create_app

    c = _get_components(ctx)
    host = host or c["config"]["web"]["host"]
    port = port or c["config"]["web"]["port"]

    app = create_app(c["config"], c)

    console.print(f"\n[bold]homewatch -- API[/bold]\n")
    console.print(f"  Local:    http://{host}:{port}/api/health")
    console.print(f"\n  Press Ctrl+C to stop.\n")

    app.run(host=host, port=port, debug=False, threaded=True)


if __name__ == "__main__":
    cli()
