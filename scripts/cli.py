"""CLI entry point for the SURL case generator.

Usage:
    # Generate a case (recipe from [tool.casegen], CASEGEN_RECIPE, or advanced)
    casegen generate

    # Reproduce a case and also export it to DuckDB
    casegen generate --seed 3f2a --recipe intermediate -o case.json --db case.db

    # Re-check or export a saved draft
    casegen verify case.json
    casegen export case.json -o case.db
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
import duckdb

from casegen import GenerationExhausted, RECIPES, build, export_draft, verify
from casegen.config import ConfigError, Settings, load_env_file, load_settings
from casegen.export import count_rows, list_tables

# Load .env by walking upward from the CWD.
DOTENV_PATH = load_env_file()

log = logging.getLogger(__name__)


def _configure_logging(level: str, quiet: bool = False, verbose: bool = False) -> None:
    if quiet:
        level = "WARNING"
    elif verbose:
        level = "DEBUG"
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )


def _settings(**overrides: Any) -> Settings:
    try:
        return load_settings(overrides)
    except ConfigError as e:
        raise click.ClickException(str(e))


def _load_draft(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text())
    except OSError as e:
        raise click.ClickException(f"Failed to read {path}: {e}")
    except json.JSONDecodeError as e:
        raise click.ClickException(f"{path} is not valid JSON: {e}")
    if not isinstance(data, dict) or "disbursements" not in data:
        raise click.ClickException(f"{path} is not a case draft.")
    return data


def _db_path(output: Path) -> Path:
    if output.suffix != ".db":
        output = output.with_suffix(".db")
        log.warning("Output path adjusted to %s (added .db suffix)", output)
    return output


def _write_db(path: Path, draft: dict[str, Any], force: bool) -> None:
    if path.exists() and not force:
        click.confirm(f"{path} already exists and will be overwritten. Continue?", abort=True)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = duckdb.connect(str(path))
    try:
        export_draft(conn, draft)
        click.echo(f"\nTables in {path}:")
        for name in list_tables(conn):
            click.echo(f"  {name}: {count_rows(conn, name)} rows")
    finally:
        conn.close()


@click.group()
def main():
    """casegen: SURL audit case generator."""


@main.command()
@click.option("--recipe", "-r", default=None, help="Recipe id or case level (default: [tool.casegen].recipe)")
@click.option("--seed", "-s", default=None, help="Seed for a reproducible case (default: random)")
@click.option("--year-end", default=None, help="Year end as 20X2-12-31 (default: [tool.casegen].year_end)")
@click.option("--count", "disbursement_count", type=int, default=None, help="Disbursement count override")
@click.option("--vendors", "vendor_count", type=int, default=None, help="Vendor count override")
@click.option("--invoices-per-vendor", type=int, default=None, help="Invoices per ordinary payment")
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    default=None,
    help="Draft JSON path (default: <output_dir>/<recipe>_<seed>.json)",
)
@click.option("--db", type=click.Path(path_type=Path), default=None, help="Also export the draft to this DuckDB file")
@click.option("--force", "-f", is_flag=True, help="Overwrite output files without prompting")
@click.option("--quiet", "-q", is_flag=True, help="Only show warnings and errors")
@click.option("--verbose", "-v", is_flag=True, help="Show per-attempt detail")
def generate(
    recipe: str | None,
    seed: str | None,
    year_end: str | None,
    disbursement_count: int | None,
    vendor_count: int | None,
    invoices_per_vendor: int | None,
    output: Path | None,
    db: Path | None,
    force: bool,
    quiet: bool,
    verbose: bool,
):
    """Generate a SURL case draft and write it as JSON."""
    settings = _settings(recipe=recipe, year_end=year_end)
    _configure_logging(settings.log_level, quiet=quiet, verbose=verbose)

    overrides = {
        "yearEnd": settings.year_end,
        "disbursementCount": disbursement_count,
        "vendorCount": vendor_count,
        "invoicesPerVendor": invoices_per_vendor,
    }
    try:
        draft = build(overrides, seed=seed, profile=settings.recipe)
    except (ValueError, GenerationExhausted) as e:
        raise click.ClickException(str(e))

    plan = draft["generationPlan"]
    if output is None:
        output = settings.output_dir / f"surl_{plan['caseLevel']}_{plan['seed'][:12]}.json"
    if output.exists() and not force:
        click.confirm(f"{output} already exists and will be overwritten. Continue?", abort=True)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(draft, indent=2))

    scope = draft["workpaper"]["layoutConfig"]["selectionScope"]
    log.info("Case: %s", draft["caseName"])
    log.info("Seed: %s", plan["seed"])
    log.info("Disbursements: %d", len(draft["disbursements"]))
    log.info("Reference documents: %d", len(draft["referenceDocuments"]))
    log.info("Scope threshold: %.2f (PM %.2f)", scope["thresholdAmount"], scope["performanceMateriality"])
    log.info("Saved to: %s", output)

    if db is not None:
        _write_db(_db_path(db), draft, force)


@main.command("verify")
@click.argument("draft_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def verify_command(draft_path: Path):
    """Check a saved draft's reconciliation, arithmetic, aging and traps."""
    errors = verify(_load_draft(draft_path))
    if errors:
        click.echo(f"{draft_path}: {len(errors)} problem(s)")
        for msg in errors:
            click.echo(f"  - {msg}")
        sys.exit(1)
    click.echo(f"{draft_path}: OK")


@main.command("export")
@click.argument("draft_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", type=click.Path(path_type=Path), required=True, help="DuckDB output path")
@click.option("--force", "-f", is_flag=True, help="Overwrite output file without prompting")
def export_command(draft_path: Path, output: Path, force: bool):
    """Export a saved draft to DuckDB tables."""
    _configure_logging(_settings().log_level)
    _write_db(_db_path(output), _load_draft(draft_path), force)


@main.command()
def recipes():
    """List the available recipes."""
    for profile in RECIPES.values():
        click.echo(f"{profile.recipe_id}  ({profile.case_level}, {profile.module_code})")
        click.echo(f"    {profile.description}")


if __name__ == "__main__":
    main()
