from __future__ import annotations

import logging
import sys
from importlib import resources
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import typer

if sys.version_info >= (3, 11):
    import tomllib as tomli
else:  # pragma: no cover
    import tomli  # type: ignore

from catalog.errors import DirectoryMissing, ServiceContractError
from io_utils.logs import setup_logging
from io_utils.store import CatalogStore
from io_utils.write import write_report
from pipeline import DEFAULT_STAGES, CatalogPipeline, RunSummary


def load_config(config_path: Optional[Path]) -> Dict[str, Any]:
    cfg_path = resources.files("config").joinpath("config.default.toml")
    with cfg_path.open("rb") as f:
        config = tomli.load(f)
    if config_path:
        with config_path.open("rb") as f:
            user_cfg = tomli.load(f)
        _deep_update(config, user_cfg)
    return config


def _deep_update(d: Dict[str, Any], u: Dict[str, Any]) -> Dict[str, Any]:
    for k, v in u.items():
        if isinstance(v, dict) and isinstance(d.get(k), dict):
            _deep_update(d[k], v)
        else:
            d[k] = v
    return d


def setup_run(
    output: Path,
    config: Optional[Path],
    plants_dir: Optional[Path] = None,
    images_dir: Optional[Path] = None,
    delay_ms: Optional[int] = None,
    log_level: Optional[str] = None,
    json_logs: bool = False,
) -> Dict[str, Any]:
    """Load configuration, apply command-line overrides and start logging."""
    cfg = load_config(config)
    catalog_cfg = cfg.setdefault("catalog", {})
    if plants_dir is not None:
        catalog_cfg["plants_dir"] = str(plants_dir)
    if images_dir is not None:
        catalog_cfg["images_dir"] = str(images_dir)
    if delay_ms is not None:
        cfg.setdefault("taxonomy", {})["delay_ms"] = delay_ms

    log_cfg = cfg.get("logging", {})
    setup_logging(
        output,
        level=log_level or log_cfg.get("level", "INFO"),
        json_format=json_logs or log_cfg.get("json", False),
    )
    return cfg


def run_stages(
    cfg: Dict[str, Any],
    stages: Iterable[str],
    output: Path,
    dry_run: bool = False,
    rebuild_index: bool = True,
) -> RunSummary:
    """Run ``stages`` over the configured catalog and write ``report.json``.

    Raises :class:`DirectoryMissing` before any record is touched when the
    catalog or asset directory is absent, and :class:`ServiceContractError`
    when the taxonomy client rejects its calls.
    """
    stages = tuple(stages)
    pipeline = CatalogPipeline.from_config(cfg, stages=stages, dry_run=dry_run)
    summary = pipeline.run(stages, rebuild_index=rebuild_index)
    report_path = write_report(output, summary.to_dict())
    logging.info("Run report written to %s", report_path)
    return summary


app = typer.Typer(help="Integrity and normalization tools for the plant catalog")

CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    exists=True,
    dir_okay=False,
    help="TOML file merged over the default configuration",
)
PLANTS_DIR_OPTION = typer.Option(
    None, "--plants-dir", help="Directory of plant record JSON files"
)
IMAGES_DIR_OPTION = typer.Option(None, "--images-dir", help="Directory of image asset folders")
OUTPUT_OPTION = typer.Option(
    Path("reports"), "--output", "-o", help="Directory for run.log and report.json"
)
DRY_RUN_OPTION = typer.Option(False, "--dry-run", help="Report changes without writing files")
LOG_LEVEL_OPTION = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR")
JSON_LOGS_OPTION = typer.Option(False, "--json-logs", help="Emit JSON formatted log lines")
DELAY_OPTION = typer.Option(
    None, "--delay-ms", min=0, help="Minimum gap between taxonomy requests"
)


def _execute(
    stages: Iterable[str],
    output: Path,
    config: Optional[Path],
    plants_dir: Optional[Path],
    images_dir: Optional[Path] = None,
    delay_ms: Optional[int] = None,
    dry_run: bool = False,
    log_level: Optional[str] = None,
    json_logs: bool = False,
    rebuild_index: bool = True,
) -> RunSummary:
    cfg = setup_run(output, config, plants_dir, images_dir, delay_ms, log_level, json_logs)
    try:
        summary = run_stages(cfg, stages, output, dry_run=dry_run, rebuild_index=rebuild_index)
    except (DirectoryMissing, ServiceContractError) as e:
        typer.echo(f"❌ {e.message}", err=True)
        raise typer.Exit(1)
    for line in summary.lines():
        typer.echo(line)
    return summary


@app.command()
def duplicates(
    plants_dir: Optional[Path] = PLANTS_DIR_OPTION,
    output: Path = OUTPUT_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION,
    json_logs: bool = JSON_LOGS_OPTION,
) -> None:
    """Report records sharing an id, scientific name, or display name."""
    _execute(
        ["duplicates"],
        output,
        config,
        plants_dir,
        log_level=log_level,
        json_logs=json_logs,
        rebuild_index=False,
    )


@app.command("filter-species")
def filter_species(
    plants_dir: Optional[Path] = PLANTS_DIR_OPTION,
    output: Path = OUTPUT_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    delay_ms: Optional[int] = DELAY_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION,
    json_logs: bool = JSON_LOGS_OPTION,
) -> None:
    """Remove records whose scientific name is not a species-rank taxon in GBIF.

    Names GBIF cannot answer for are kept and listed for review.
    """
    _execute(
        ["taxonomy"],
        output,
        config,
        plants_dir,
        delay_ms=delay_ms,
        dry_run=dry_run,
        log_level=log_level,
        json_logs=json_logs,
    )


@app.command("fix-images")
def fix_images(
    plants_dir: Optional[Path] = PLANTS_DIR_OPTION,
    images_dir: Optional[Path] = IMAGES_DIR_OPTION,
    output: Path = OUTPUT_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION,
    json_logs: bool = JSON_LOGS_OPTION,
) -> None:
    """Point imageUrl/images at each record's own asset folder."""
    _execute(
        ["images"],
        output,
        config,
        plants_dir,
        images_dir=images_dir,
        dry_run=dry_run,
        log_level=log_level,
        json_logs=json_logs,
    )


@app.command("normalize-descriptions")
def normalize_descriptions(
    plants_dir: Optional[Path] = PLANTS_DIR_OPTION,
    output: Path = OUTPUT_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION,
    json_logs: bool = JSON_LOGS_OPTION,
) -> None:
    """Strip source citations from descriptions and flag quality issues."""
    _execute(
        ["descriptions"],
        output,
        config,
        plants_dir,
        dry_run=dry_run,
        log_level=log_level,
        json_logs=json_logs,
    )


@app.command("normalize-names")
def normalize_names(
    plants_dir: Optional[Path] = PLANTS_DIR_OPTION,
    output: Path = OUTPUT_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION,
    json_logs: bool = JSON_LOGS_OPTION,
) -> None:
    """Clean commonNames lists and list records still missing common names."""
    _execute(
        ["names"],
        output,
        config,
        plants_dir,
        dry_run=dry_run,
        log_level=log_level,
        json_logs=json_logs,
    )


@app.command("fix-ids")
def fix_ids(
    plants_dir: Optional[Path] = PLANTS_DIR_OPTION,
    output: Path = OUTPUT_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION,
    json_logs: bool = JSON_LOGS_OPTION,
) -> None:
    """Give every record that shares an id with another record a fresh id."""
    _execute(
        ["ids"],
        output,
        config,
        plants_dir,
        dry_run=dry_run,
        log_level=log_level,
        json_logs=json_logs,
    )


@app.command("rebuild-index")
def rebuild_index(
    plants_dir: Optional[Path] = PLANTS_DIR_OPTION,
    output: Path = OUTPUT_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION,
) -> None:
    """Regenerate the index from the record files on disk."""
    cfg = setup_run(output, config, plants_dir, log_level=log_level)
    catalog_cfg = cfg["catalog"]
    store = CatalogStore(
        Path(catalog_cfg["plants_dir"]),
        index_name=catalog_cfg.get("index_name", "index.json"),
        index_timestamp=catalog_cfg.get("index_timestamp", True),
    )
    try:
        index = store.rebuild_index()
    except DirectoryMissing as e:
        typer.echo(f"❌ {e.message}", err=True)
        raise typer.Exit(1)
    typer.echo(f"✅ {store.index_name}: {index.count} records")


@app.command()
def run(
    plants_dir: Optional[Path] = PLANTS_DIR_OPTION,
    images_dir: Optional[Path] = IMAGES_DIR_OPTION,
    output: Path = OUTPUT_OPTION,
    config: Optional[Path] = CONFIG_OPTION,
    delay_ms: Optional[int] = DELAY_OPTION,
    skip: List[str] = typer.Option(
        [],
        "--skip",
        help="Stage to leave out (duplicates, taxonomy, images, descriptions, names)",
    ),
    dry_run: bool = DRY_RUN_OPTION,
    log_level: Optional[str] = LOG_LEVEL_OPTION,
    json_logs: bool = JSON_LOGS_OPTION,
) -> None:
    """Run the full integrity pipeline and rebuild the index."""
    unknown = [s for s in skip if s not in DEFAULT_STAGES]
    if unknown:
        typer.echo(f"❌ Unknown stage(s): {', '.join(unknown)}", err=True)
        raise typer.Exit(2)
    stages = [s for s in DEFAULT_STAGES if s not in skip]
    _execute(
        stages,
        output,
        config,
        plants_dir,
        images_dir=images_dir,
        delay_ms=delay_ms,
        dry_run=dry_run,
        log_level=log_level,
        json_logs=json_logs,
    )


if __name__ == "__main__":
    app()
