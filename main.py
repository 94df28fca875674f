"""
main.py
CLI entry point for the Postal Pricing Engine.

Usage:
  python main.py seed   --json data/catalog.json [--keep]
  python main.py demo   [--json data/catalog.json]
  python main.py validate-rules
  python main.py api
"""
import argparse
import json
import sys
from pathlib import Path

# Ensure project root is on sys.path when running directly
sys.path.insert(0, str(Path(__file__).parent))

# ── Sample shipments for the demo ─────────────────────────────────────────────
DEMO_SHIPMENTS = [
    {"service_type": "EXPRESS",  "weight_kg": 2},
    {"service_type": "EXPRESS",  "weight_kg": 25, "requires_signature": True},
    {"service_type": "STANDARD", "weight_kg": 4, "has_insurance": True, "declared_value": 20000},
    {"service_type": "STANDARD", "weight_kg": 12, "volume_cm3": 18000},
    {"service_type": "OVERNIGHT", "weight_kg": 1},
]


# Demo mode

def run_demo(json_path: str = "") -> None:
    from rich import box
    from rich.console import Console
    from rich.table import Table

    from catalog.json_store import JSONCatalog
    from pricing_engine.engine import PricingEngine
    from pricing_engine.errors import NoTariffAvailable
    from pricing_engine.models import PriceCalculationInput

    console = Console()
    console.print("\n[bold blue]═══ POSTAL PRICING ENGINE — DEMO ═══[/bold blue]\n")

    catalog = JSONCatalog(Path(json_path) if json_path else None)
    engine  = PricingEngine(catalog=catalog)

    for raw in DEMO_SHIPMENTS:
        shipment = PriceCalculationInput(**raw)
        title = f"{shipment.service_type} — {shipment.weight_kg:g} kg"
        try:
            result = engine.calculate_price(shipment)
        except NoTariffAvailable as exc:
            console.print(f"  [red]{title}: {exc}[/red]\n")
            continue

        table = Table(title=title, box=box.ROUNDED, show_lines=False)
        table.add_column("Line",   style="cyan", width=40)
        table.add_column("Amount", justify="right", width=16)
        for line in result.breakdown:
            style = "green" if line.amount < 0 else "white"
            table.add_row(line.description, f"[{style}]{line.amount:>14,.2f}[/{style}]")
        table.add_section()
        table.add_row("[bold]Subtotal[/bold]", f"{result.subtotal:>14,.2f}")
        table.add_row("[bold green]Total[/bold green]", f"[bold green]{result.total_amount:>14,.0f}[/bold green]")
        console.print(table)
        console.print()


# Seed mode

def run_seed(json_path: str, keep: bool = False) -> None:
    from catalog.json_store import JSONCatalog
    from catalog.sqlite_store import SQLiteStore
    from guardrails.rule_validator import RuleCatalogValidator, TariffCatalogValidator

    source = JSONCatalog(Path(json_path))
    store  = SQLiteStore()
    if not keep:
        store.clear_catalog()
    summary = {
        "tariffs_inserted": store.insert_tariffs(source.tariff_rows()),
        "rules_inserted":   store.insert_rules(source.rule_rows()),
        "tariff_report":    TariffCatalogValidator().validate(source.tariff_rows()).__dict__,
        "rule_report":      RuleCatalogValidator().validate(source.rule_rows()).__dict__,
    }
    print(json.dumps(summary, indent=2))


# Validate mode

def run_validate() -> int:
    from dataclasses import asdict

    from rich.console import Console

    from catalog.sqlite_store import SQLiteStore
    from guardrails.rule_validator import RuleCatalogValidator, TariffCatalogValidator

    console = Console()
    store = SQLiteStore()
    tariffs = TariffCatalogValidator().validate(asdict(t) for t in store.all_tariffs())
    rules   = RuleCatalogValidator().validate(store.rule_rows())

    for label, report in (("Tariffs", tariffs), ("Pricing rules", rules)):
        status = "[green]PASSED[/green]" if report.passed else "[red]FAILED[/red]"
        console.print(f"  [bold]{label}:[/bold] {report.checked} checked — {status}")
        for issue in report.issues:
            console.print(f"    [red]✗ {issue}[/red]")
        for w in report.warnings:
            console.print(f"    [yellow]⚠  {w}[/yellow]")
    return 0 if tariffs.passed and rules.passed else 1


# ── API mode ──────────────────────────────────────────────────────────────────

def run_api() -> None:
    import uvicorn
    from config.settings import settings
    from monitoring import start_metrics_server
    start_metrics_server(settings.metrics_port)
    uvicorn.run(
        "api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Postal Pricing Engine")
    sub = parser.add_subparsers(dest="command", required=True)

    seed = sub.add_parser("seed", help="Load tariffs and rules from a JSON catalog into SQLite")
    seed.add_argument("--json", required=True, help="Path to the JSON catalog")
    seed.add_argument("--keep", action="store_true", help="Append instead of replacing the catalog")

    demo = sub.add_parser("demo", help="Price sample shipments against a JSON catalog")
    demo.add_argument("--json", default="", help="Path to the JSON catalog")

    sub.add_parser("validate-rules", help="Check the stored catalog for malformed rules")
    sub.add_parser("api", help="Run the REST API")

    args = parser.parse_args(argv)
    if args.command == "seed":
        run_seed(args.json, keep=args.keep)
    elif args.command == "demo":
        run_demo(args.json)
    elif args.command == "validate-rules":
        return run_validate()
    elif args.command == "api":
        run_api()
    return 0


if __name__ == "__main__":
    sys.exit(main())
