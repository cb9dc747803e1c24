# kg_citations/cli/extract_cli.py

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

import typer
from rich.progress import Progress
from rich.table import Table

from kg_citations.cli.common import console, get_service
from kg_citations.config.settings import settings
from kg_citations.extraction.batch import BatchTarget, run_batch, targets_from_corpus
from kg_citations.extraction.results import ExtractionOptions, ExtractionResult

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _print_result(result: ExtractionResult) -> None:
    status = "[green]ok[/green]" if result.success else "[red]failed[/red]"
    console.print(f"[bold]{result.document_uri}[/bold]: {status} in {result.duration_ms} ms")

    table = Table(show_header=True, header_style="bold")
    table.add_column("Source")
    table.add_column("References", justify="right")
    for source, count in result.source_counts.items():
        table.add_row(source, str(count))
    console.print(table)

    console.print(
        f"Extracted [bold]{result.total_extracted}[/bold] citations, "
        f"[bold]{result.matched_to_chive}[/bold] matched to the local corpus."
    )
    for failure in result.failures:
        console.print(f"[yellow]{failure.source}:[/yellow] {failure.reason}")
    if result.error:
        console.print(f"[red]{result.error}[/red]")


def _load_targets(uris: List[str], targets_file: Optional[Path]) -> List[BatchTarget]:
    """
    Targets from arguments and/or a file with one
    `uri[,owner_id,content_id[,doi]]` per line. Order is preserved,
    duplicates are dropped.
    """
    lines: List[str] = []
    if targets_file is not None:
        lines.extend(targets_file.read_text(encoding="utf-8").splitlines())
    lines.extend(uris)

    seen = set()
    targets: List[BatchTarget] = []
    for line in lines:
        parts = [p.strip() for p in line.split(",")]
        if not parts[0] or parts[0] in seen:
            continue
        seen.add(parts[0])
        targets.append(
            BatchTarget(
                document_uri=parts[0],
                owner_id=parts[1] if len(parts) > 1 and parts[1] else None,
                content_id=parts[2] if len(parts) > 2 and parts[2] else None,
                doi=parts[3] if len(parts) > 3 and parts[3] else None,
            )
        )
    return targets


def _parse_enricher_ids(values: List[str]) -> Dict[str, str]:
    ids: Dict[str, str] = {}
    for value in values:
        name, sep, external_id = value.partition("=")
        if not sep or not name.strip() or not external_id.strip():
            raise typer.BadParameter(f"expected name=id, got {value!r}", param_hint="--enricher-id")
        ids[name.strip().lower()] = external_id.strip()
    return ids


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def extract(
    document_uri: str = typer.Argument(..., help="URI of the citing document."),
    doi: Optional[str] = typer.Option(None, "--doi", help="DOI of the citing document."),
    owner_id: Optional[str] = typer.Option(None, "--owner", help="Owner id of the document PDF."),
    content_id: Optional[str] = typer.Option(None, "--content", help="Content id of the document PDF."),
    no_grobid: bool = typer.Option(False, "--no-grobid", help="Skip the structural extractor."),
    no_enrichers: bool = typer.Option(False, "--no-enrichers", help="Skip the enrichers."),
    no_crossref: bool = typer.Option(False, "--no-crossref", help="Skip the Crossref metadata back-fill."),
    enricher_ids: List[str] = typer.Option(
        None,
        "--enricher-id",
        help="Known enricher id of the document as 'name=id', e.g. semantic-scholar=abc123.",
    ),
) -> None:
    """
    Extract, match and store the citations of one document.
    """
    options = ExtractionOptions(
        use_structural_extractor=not no_grobid,
        use_enrichers=not no_enrichers,
        use_crossref=not no_crossref,
        enricher_ids=_parse_enricher_ids(enricher_ids or []),
        doi=doi,
        owner_id=owner_id,
        content_id=content_id,
    )
    result = get_service().extract_citations(document_uri, options)
    _print_result(result)
    if not result.success:
        raise typer.Exit(code=1)


def extract_batch(
    uris: List[str] = typer.Argument(
        None,
        help="Targets as 'uri[,owner_id,content_id[,doi]]'.",
    ),
    targets_file: Optional[Path] = typer.Option(
        None,
        "--targets-file",
        "-f",
        exists=True,
        dir_okay=False,
        readable=True,
        help="File with one target per line.",
    ),
    all_indexed: bool = typer.Option(
        False,
        "--all",
        help="Extract for every document in the corpus index.",
    ),
    batch_size: int = typer.Option(
        settings.BATCH_SIZE, "--batch-size", "-b", min=1, help="Documents per batch."
    ),
    delay: float = typer.Option(
        settings.BATCH_DELAY_SECONDS, "--delay", min=0.0, help="Seconds to wait between batches."
    ),
    no_grobid: bool = typer.Option(False, "--no-grobid", help="Skip the structural extractor."),
    no_enrichers: bool = typer.Option(False, "--no-enrichers", help="Skip the enrichers."),
    no_crossref: bool = typer.Option(False, "--no-crossref", help="Skip the Crossref metadata back-fill."),
) -> None:
    """
    Extract citations for many documents in batches.
    """
    service = get_service()
    targets = _load_targets(uris or [], targets_file)
    if all_indexed:
        given = {t.document_uri for t in targets}
        targets.extend(t for t in targets_from_corpus(service.corpus) if t.document_uri not in given)

    if not targets:
        console.print("[yellow]No documents to process.[/yellow]")
        raise typer.Exit(code=0)

    console.rule("[bold cyan]Citation extraction[/bold cyan]")
    options = ExtractionOptions(
        use_structural_extractor=not no_grobid,
        use_enrichers=not no_enrichers,
        use_crossref=not no_crossref,
    )

    with Progress(console=console) as progress:
        task = progress.add_task("Extracting citations...", total=len(targets))
        stats = run_batch(
            service,
            targets,
            batch_size=batch_size,
            delay_seconds=delay,
            options=options,
            on_result=lambda _: progress.advance(task),
        )

    console.print(
        f"Processed [bold]{stats.processed}[/bold] documents: "
        f"[green]{stats.succeeded} succeeded[/green], [red]{stats.failed} failed[/red]; "
        f"{stats.total_citations} citations, {stats.total_matched} matched."
    )
    for error in stats.errors:
        console.print(f"[red]{error}[/red]")
    if stats.failed:
        raise typer.Exit(code=1)


def citations(
    document_uri: str = typer.Argument(..., help="URI of the citing document."),
    limit: int = typer.Option(100, "--limit", "-n", min=1, help="Max rows to show."),
    offset: int = typer.Option(0, "--offset", min=0, help="Rows to skip."),
    matched_only: bool = typer.Option(False, "--matched-only", help="Only show matched citations."),
) -> None:
    """
    Show the stored citations of a document.
    """
    rows = get_service().get_extracted_citations(
        document_uri, limit=limit, offset=offset, matched_only=matched_only
    )
    if not rows:
        console.print(f"[yellow]No stored citations for {document_uri}.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Title / raw text", overflow="fold")
    table.add_column("DOI")
    table.add_column("Source")
    table.add_column("Match")
    table.add_column("Conf.", justify="right")

    for i, c in enumerate(rows, start=offset + 1):
        table.add_row(
            str(i),
            c.title or c.raw_text,
            c.doi or "",
            c.source.value,
            f"{c.chive_match_uri} ({c.match_method.value})" if c.chive_match_uri else "",
            f"{c.match_confidence:.2f}" if c.match_confidence is not None else "",
        )
    console.print(table)
