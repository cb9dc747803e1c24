# kg_citations/cli/corpus_cli.py

from __future__ import annotations

from typing import Optional

import typer
from rich.table import Table

from kg_citations.cli.common import console, get_service
from kg_citations.storage.corpus_index import IndexedDocument

app = typer.Typer(help="Manage the local corpus index that citations are matched against.")


@app.command("add")
def add(
    uri: str = typer.Argument(..., help="Document URI."),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Document title."),
    doi: Optional[str] = typer.Option(None, "--doi", help="Document DOI."),
    owner_id: Optional[str] = typer.Option(None, "--owner", help="Owner id of the document PDF."),
    content_id: Optional[str] = typer.Option(None, "--content", help="Content id of the document PDF."),
) -> None:
    """
    Add a document to the corpus index, or update it if the URI is known.
    """
    get_service().corpus.add_document(
        IndexedDocument(uri=uri, title=title, doi=doi, owner_id=owner_id, content_id=content_id)
    )
    console.print(f"[green]Indexed[/green] {uri}")


@app.command("list")
def list_documents(
    limit: int = typer.Option(50, "--limit", "-n", min=1, help="Max documents to show."),
) -> None:
    """
    List indexed documents, newest first.
    """
    table = Table(show_header=True, header_style="bold")
    table.add_column("URI")
    table.add_column("Title", overflow="fold")
    table.add_column("DOI")

    shown = 0
    for doc in get_service().corpus.iter_documents():
        if shown >= limit:
            break
        table.add_row(doc.uri, doc.title or "", doc.doi or "")
        shown += 1

    if not shown:
        console.print("[yellow]The corpus index is empty.[/yellow]")
        return
    console.print(table)
