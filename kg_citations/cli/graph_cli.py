# kg_citations/cli/graph_cli.py

from __future__ import annotations

import typer
from rich.table import Table

from kg_citations.cli.common import console, get_service
from kg_citations.graph.citation_graph import CitationQueryResult

app = typer.Typer(help="Read-only queries over the citation graph.")


def _title_of(uri: str) -> str:
    doc = get_service().corpus.get_document(uri)
    return (doc.title if doc is not None else None) or ""


def _print_edges(result: CitationQueryResult, other_end: str, offset: int) -> None:
    if not result.citations:
        console.print("[yellow]No citations found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Paper")
    table.add_column("Title", overflow="fold")
    table.add_column("Confidence", justify="right")
    table.add_column("Method")

    for i, edge in enumerate(result.citations, start=offset + 1):
        uri = edge.cited_uri if other_end == "cited" else edge.citing_uri
        table.add_row(
            str(i),
            uri,
            _title_of(uri),
            f"{edge.confidence:.2f}",
            edge.match_method.value if edge.match_method else "",
        )
    console.print(table)

    more = " (more available)" if result.has_more else ""
    console.print(f"{len(result.citations)} of {result.total}{more}")


@app.command("references")
def references(
    paper_uri: str = typer.Argument(..., help="Citing paper URI."),
    limit: int = typer.Option(100, "--limit", "-n", min=1),
    offset: int = typer.Option(0, "--offset", min=0),
) -> None:
    """
    Corpus papers that PAPER_URI cites.
    """
    result = get_service().citation_graph.get_references(paper_uri, limit=limit, offset=offset)
    _print_edges(result, "cited", offset)


@app.command("citing")
def citing(
    paper_uri: str = typer.Argument(..., help="Cited paper URI."),
    limit: int = typer.Option(100, "--limit", "-n", min=1),
    offset: int = typer.Option(0, "--offset", min=0),
) -> None:
    """
    Corpus papers that cite PAPER_URI.
    """
    result = get_service().citation_graph.get_citing_papers(paper_uri, limit=limit, offset=offset)
    _print_edges(result, "citing", offset)


@app.command("co-cited")
def co_cited(
    paper_uri: str = typer.Argument(..., help="Paper URI."),
    min_co_citations: int = typer.Option(
        2, "--min", "-m", min=1, help="Minimum number of papers citing both."
    ),
) -> None:
    """
    Papers frequently cited together with PAPER_URI.
    """
    papers = get_service().citation_graph.find_co_cited_papers(
        paper_uri, min_co_citations=min_co_citations
    )
    if not papers:
        console.print("[yellow]No co-cited papers found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Paper")
    table.add_column("Title", overflow="fold")
    table.add_column("Co-citations", justify="right")
    table.add_column("Strength", justify="right")
    for p in papers:
        table.add_row(p.uri, p.title or _title_of(p.uri), str(p.co_citation_count), f"{p.strength:.3f}")
    console.print(table)


@app.command("counts")
def counts(paper_uri: str = typer.Argument(..., help="Paper URI.")) -> None:
    """
    How often PAPER_URI is cited, and how many corpus papers it cites.
    """
    c = get_service().citation_graph.get_citation_counts(paper_uri)
    console.print(f"[bold]{paper_uri}[/bold]")
    console.print(f"  cited by:   {c.cited_by_count}")
    console.print(f"  references: {c.references_count}")
