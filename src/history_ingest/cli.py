from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, List, Optional

import typer
from rich import print
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import __version__
from .allowlist import LicensePolicy, is_license_allowed
from .config import AppConfig, load_config, repo_root
from .errors import LicenseGateError, QueryFailedError, SeedError
from .pipeline import (
    CURATED_TOPICS,
    PublishResult,
    artifact_paths,
    build_client,
    coverage_stats,
    publish,
    run_bulk_ingest,
    run_topic_batch,
    run_topic_ingest,
    source_from_config,
)
from .seed import ingest_seed
from .storage import EventStore
from .topic_resolver import TopicResolver

app = typer.Typer(add_completion=False, help="Historical event ingestion from Wikidata.")
console = Console()


@app.callback()
def _main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="%H:%M:%S",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _policy(cfg: AppConfig) -> LicensePolicy:
    return LicensePolicy.from_config(cfg.allowed_licenses)


def _store(cfg: AppConfig, db: Optional[Path]) -> Optional[EventStore]:
    path = db or cfg.db_path
    return EventStore(path) if path else None


def _publish_or_exit(cfg: AppConfig, candidates, topic: Optional[str], db: Optional[Path]) -> PublishResult:
    output_path, audit_path = artifact_paths(cfg.artifacts_dir, cfg.normalized_file, cfg.audit_file, topic)
    return _gate_or_exit(cfg, db, lambda store: publish(candidates, _policy(cfg), output_path, audit_path, store))


def _gate_or_exit(
    cfg: AppConfig, db: Optional[Path], publisher: Callable[[Optional[EventStore]], PublishResult]
) -> PublishResult:
    store = _store(cfg, db)
    try:
        result = publisher(store)
    except LicenseGateError as e:
        print(f"[bold red]license gate failed[/bold red]: violations={e.violation_count}")
        print(f"audit={e.audit_path}")
        raise typer.Exit(code=1)
    finally:
        if store is not None:
            store.close()

    print(f"normalized_output={result.output_path}")
    print(f"audit={result.audit_path}")
    if result.inserted is not None:
        print(f"inserted={result.inserted}")
    return result


def _print_stats(candidates) -> None:
    stats = coverage_stats(candidates)
    print("\n[bold]Stats[/bold]")
    print(f"  total events:  {stats['total']}")
    print(f"  with images:   {stats['with_image']} ({stats['with_image_pct']}%)")
    print(f"  with youtube:  {stats['with_youtube']}")
    print(f"  categories:    {stats['categories']}")
    print("  century distribution (top 10):")
    for century, count in stats["centuries"]:
        print(f"    {century}s: {count}")


@app.command()
def ping() -> None:
    """
    Sanity check: config files, env wiring, and basic repo paths.
    """
    cfg = load_config()
    root = repo_root()

    print(f"[bold]history-ingest[/bold] version={__version__}")
    print(f"env={cfg.env}")
    print(f"repo_root={root}")

    print(f"settings.yaml exists={(root / 'configs' / 'settings.yaml').exists()}")
    print(f"licenses.yaml exists={(root / 'configs' / 'licenses.yaml').exists()}")

    print(f"sparql_endpoint={cfg.ingest.sparql_endpoint}")
    print(f"rate_limit={cfg.ingest.rate_max_requests}/{cfg.ingest.rate_window_s}s")
    print(f"allowed licenses={', '.join(cfg.allowed_licenses)}")
    print(f"source={cfg.source.get('source_name')} license={cfg.source.get('license')}")
    print(f"db={cfg.db_path or '(none)'}")

    cfg.artifacts_dir.mkdir(parents=True, exist_ok=True)
    print(f"artifacts_dir={cfg.artifacts_dir.resolve()}")


@app.command("check-license")
def check_license(license: str = typer.Argument(..., help="License string, e.g. 'CC0'")) -> None:
    """Check whether a license string passes the allow-list."""
    cfg = load_config()
    allowed = is_license_allowed(license, _policy(cfg))
    print(f"license={license!r}")
    print(f"allowed={allowed}")
    if not allowed:
        raise typer.Exit(code=1)


@app.command()
def resolve(topic: str) -> None:
    """Resolve free text to a Wikidata entity id."""
    cfg = load_config()
    client = build_client(cfg.ingest)
    resolver = TopicResolver(client)
    match = resolver.resolve(topic)
    if match is None:
        print(f"[yellow]not found[/yellow]: {topic}")
        for s in resolver.suggest_topics(topic):
            print(f"  - {s}")
        raise typer.Exit(code=2)
    print(f"{match.id}  {match.label}  {match.description}")


@app.command("ingest-topic")
def ingest_topic(
    topic: str,
    limit: Optional[int] = typer.Option(None, help="Result cap for the topic query"),
    no_enrich: bool = typer.Option(False, "--no-enrich", help="Skip the YouTube batch pass"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Fetch and report, write nothing"),
    db: Optional[Path] = typer.Option(None, help="SQLite file to upsert into"),
) -> None:
    """Resolve a topic, fetch related events, gate and write them."""
    cfg = load_config()
    client = build_client(cfg.ingest)
    source = source_from_config(cfg.source)

    try:
        run = run_topic_ingest(
            client,
            topic,
            source,
            limit=limit or cfg.ingest.topic_limit,
            enrich=not no_enrich,
            batch_size=cfg.ingest.enrichment_batch_size,
            enrichment_delay_s=cfg.ingest.enrichment_delay_s,
        )
    except QueryFailedError as e:
        print(f"[bold red]query failed[/bold red]: {e}")
        raise typer.Exit(code=1)

    if not run.found:
        print(f"[yellow]topic not found on Wikidata[/yellow]: {topic}")
        for s in run.suggestions:
            print(f"  - {s}")
        raise typer.Exit(code=2)

    print(f"topic={run.match.label} ({run.match.id}) rows={run.rows} events={len(run.candidates)}")
    if not run.candidates:
        print("no events found; try:")
        for s in run.suggestions:
            print(f"  - {s}")
        return

    _print_stats(run.candidates)
    if dry_run:
        print("\n(dry run: nothing written)")
        return
    _publish_or_exit(cfg, run.candidates, topic, db)


@app.command("ingest-topics")
def ingest_topics(
    topics: Optional[List[str]] = typer.Argument(None, help="Topics; defaults to the curated list"),
    no_enrich: bool = typer.Option(False, "--no-enrich"),
    dry_run: bool = typer.Option(False, "--dry-run"),
    db: Optional[Path] = typer.Option(None),
) -> None:
    """Ingest several topics into one gated output."""
    cfg = load_config()
    client = build_client(cfg.ingest)
    source = source_from_config(cfg.source)

    items, accumulator = run_topic_batch(
        client,
        source,
        topics or list(CURATED_TOPICS),
        limit=cfg.ingest.topic_limit,
        enrich=not no_enrich,
        batch_size=cfg.ingest.enrichment_batch_size,
        enrichment_delay_s=cfg.ingest.enrichment_delay_s,
    )

    table = Table(title="Topic batch")
    table.add_column("topic")
    table.add_column("status")
    table.add_column("qid")
    table.add_column("new events", justify="right")
    for it in items:
        table.add_row(it.topic, it.status, it.qid or "", str(it.events))
    console.print(table)

    candidates = accumulator.values()
    _print_stats(candidates)
    if dry_run or not candidates:
        print("\n(nothing written)")
        return
    _publish_or_exit(cfg, candidates, "batch", db)


@app.command()
def bulk(
    era: Optional[str] = typer.Option(None, help="Only catalog queries whose name contains this text"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Preview counts only"),
    no_enrich: bool = typer.Option(False, "--no-enrich", help="Skip the YouTube batch pass"),
    wikipedia_images: bool = typer.Option(False, "--wikipedia-images", help="Fill missing images from Wikipedia"),
    fresh: bool = typer.Option(False, "--fresh", help="Ignore the previous normalized output"),
    db: Optional[Path] = typer.Option(None, help="SQLite file to upsert into"),
) -> None:
    """Sweep the type/era catalog and write one gated normalized output."""
    cfg = load_config()
    client = build_client(cfg.ingest)
    source = source_from_config(cfg.source)
    output_path, _ = artifact_paths(cfg.artifacts_dir, cfg.normalized_file, cfg.audit_file)

    print("[bold]Bulk ingestion[/bold]")
    if dry_run:
        print("(dry run: no files will be written)")

    run = run_bulk_ingest(
        client,
        source,
        era=era,
        seed_path=None if fresh else output_path,
        delay_s=cfg.ingest.bulk_query_delay_s,
        enrich=not no_enrich,
        wikipedia_images=wikipedia_images,
        batch_size=cfg.ingest.enrichment_batch_size,
        enrichment_delay_s=cfg.ingest.enrichment_delay_s,
        wikipedia_delay_s=cfg.ingest.wikipedia_delay_s,
    )

    table = Table(title="Queries")
    table.add_column("query")
    table.add_column("status")
    table.add_column("rows", justify="right")
    table.add_column("new", justify="right")
    for r in run.reports:
        table.add_row(r.name, r.status, str(r.rows), str(r.added))
    console.print(table)

    print(f"preserved={run.preserved} failed_queries={len(run.failed)} youtube_enriched={run.youtube_enriched}")
    _print_stats(run.candidates)

    if dry_run:
        print("\n(dry run complete: no files written)")
        return
    _publish_or_exit(cfg, run.candidates, None, db)


@app.command("ingest-seed")
def ingest_seed_cmd(
    path: Path = typer.Argument(..., help="Seed JSON with snake_case {sources, events}"),
    db: Optional[Path] = typer.Option(None, help="SQLite file to upsert into"),
) -> None:
    """Validate a hand-curated seed file, gate its licenses and write it."""
    cfg = load_config()
    target = cfg.artifacts_dir / "seed"
    output_path, audit_path = target / cfg.normalized_file, target / cfg.audit_file

    try:
        result = _gate_or_exit(cfg, db, lambda store: ingest_seed(path, _policy(cfg), output_path, audit_path, store))
    except SeedError as e:
        print(f"[bold red]invalid seed[/bold red]: {escape(str(e))}")
        raise typer.Exit(code=1)

    print(f"events={len(result.events)}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
