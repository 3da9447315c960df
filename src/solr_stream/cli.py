from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger

from .batch import BatchConfig, BatchProcessor
from .client import SolrClient
from .config import get_settings
from .flow import SolrFlow
from .messages import delete_by_query, upsert
from .settings import UpdateSettings
from .source import SolrSource
from .utils import iter_ndjson, to_ndjson

app = typer.Typer(help="solr-stream operational CLI")

# ---------------------------
# Common options
# ---------------------------


def url_opt() -> Optional[str]:
    return typer.Option(None, "--url", envvar="SOLR_BASE_URL", help="Solr base URL, e.g. http://localhost:8983/solr")


def commit_within_opt(default: Optional[int] = None) -> Optional[int]:
    return typer.Option(
        default,
        "--commit-within",
        help="commitWithin in ms; -1 sends no directive"
        + (" [default: SOLR_COMMIT_WITHIN]" if default is None else ""),
    )


def _client(url: Optional[str]) -> SolrClient:
    settings = get_settings()
    if url:
        settings = settings.model_copy(update={"base_url": url})
    return SolrClient.from_settings(settings)


# ---------------------------
# Commands
# ---------------------------


@app.command("ping")
def ping(collection: str = typer.Argument(...), url: Optional[str] = url_opt()):
    with _client(url) as solr:
        ok = solr.ping(collection)
    typer.echo(json.dumps({"collection": collection, "ok": ok}, indent=2))


@app.command("commit")
def commit(collection: str = typer.Argument(...), url: Optional[str] = url_opt()):
    with _client(url) as solr:
        resp = solr.commit(collection)
    typer.echo(json.dumps({"collection": collection, "status": resp.status}, indent=2))


@app.command("export")
def export(
    collection: str = typer.Argument(...),
    expr: str = typer.Argument(..., help='Streaming expression, e.g. search(c, q="*:*", ...)'),
    url: Optional[str] = url_opt(),
):
    """Stream tuples of an expression to stdout as ndjson."""
    n = 0
    with _client(url) as solr, SolrSource.from_expression(solr, collection, expr) as source:
        for t in source:
            sys.stdout.write(to_ndjson(t) + "\n")
            n += 1
    logger.info(f"Exported {n} tuples from {collection}")


@app.command("load")
def load(
    collection: str = typer.Argument(...),
    path: Path = typer.Argument(..., exists=True, readable=True, help="ndjson(.gz) documents"),
    url: Optional[str] = url_opt(),
    commit_within: Optional[int] = commit_within_opt(),
    max_rows: Optional[int] = typer.Option(None, "--max-rows", help="Messages per update request [SOLR_BATCH_MAX_ROWS]"),
    max_ms: Optional[int] = typer.Option(None, "--max-ms", help="Flush after this many ms [SOLR_BATCH_MAX_MS]"),
):
    """Upsert ndjson documents; line numbers ride along as pass-through."""
    settings = get_settings()
    commit_within = settings.commit_within if commit_within is None else commit_within
    config = BatchConfig(
        max_rows=settings.batch_max_rows if max_rows is None else max_rows,
        max_ms=settings.batch_max_ms if max_ms is None else max_ms,
    )
    failed: list[int] = []

    def on_results(results):
        for r in results:
            if not r.ok:
                failed.append(r.pass_through)

    with _client(url) as solr:
        flow = SolrFlow.documents(collection, UpdateSettings(commit_within=commit_within), solr)
        with BatchProcessor(flow, config, on_results) as bp:
            for lineno, doc in enumerate(iter_ndjson(path), 1):
                bp.add(upsert(doc, pass_through=lineno))
        summary = {"collection": collection, "batches": bp.batches, "written": bp.written, "failed_lines": failed}

    typer.echo(json.dumps(summary, indent=2))
    if failed:
        logger.error(f"{len(failed)} documents failed to load")
        raise typer.Exit(code=1)


@app.command("delete-query")
def delete_query(
    collection: str = typer.Argument(...),
    query: str = typer.Argument(...),
    url: Optional[str] = url_opt(),
    commit_within: int = commit_within_opt(0),
):
    with _client(url) as solr:
        flow = SolrFlow.documents(collection, UpdateSettings(commit_within=commit_within), solr)
        (result,) = flow.process([delete_by_query(query)])
    typer.echo(json.dumps({"collection": collection, "status": result.status, "error": result.error}))
    if not result.ok:
        raise typer.Exit(code=1)


def main():
    app()


if __name__ == "__main__":
    main()
