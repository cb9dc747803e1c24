# kg_citations/cli/main.py

from __future__ import annotations

import logging
from typing import Optional

import typer

from kg_citations.cli import corpus_cli, extract_cli, graph_cli
from kg_citations.config.settings import settings

app = typer.Typer(help="Citation extraction and citation graph tools.")

app.command("extract")(extract_cli.extract)
app.command("extract-batch")(extract_cli.extract_batch)
app.command("citations")(extract_cli.citations)
app.add_typer(corpus_cli.app, name="corpus")
app.add_typer(graph_cli.app, name="graph")


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Log level (defaults to settings.LOG_LEVEL).",
    ),
) -> None:
    logging.basicConfig(
        level=(log_level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


if __name__ == "__main__":
    app()
