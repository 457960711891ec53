# main.py

from typing import Annotated, Optional

from typer import Argument, Exit, Option, Typer

from guideline_search.application.search_engine import (
    DEFAULT_DB_PATH,
    DEFAULT_TOP_K,
    SemanticSearchEngine,
)
from guideline_search.domain.errors import SearchEngineError
from guideline_search.domain.models import IndexingErrorPolicy
from guideline_search.infrastructure.document_loader import DocumentLoader
from guideline_search.infrastructure.embedding_engine import DEFAULT_MODEL_NAME
from guideline_search.interface.cli import (
    ask_continue,
    configure_logging,
    display_bookmarks,
    display_error,
    display_indexing_report,
    display_results,
    display_stats,
    display_welcome_banner,
    prompt_for_query,
)


app = Typer(help="Offline semantic search over the guidelines manual.")

DbPathOption = Annotated[
    str,
    Option("--db-path", envvar="GUIDELINE_SEARCH_DB_PATH", help="Index directory."),
]
ModelOption = Annotated[
    str,
    Option("--model", envvar="GUIDELINE_SEARCH_MODEL", help="Sentence-embedding model."),
]


def build_engine(db_path: str, model_name: str, space: str = "cosine") -> SemanticSearchEngine:
    return SemanticSearchEngine(model_name=model_name, db_path=db_path, space=space)


@app.command()
def index(
    corpus: Annotated[str, Argument(help="Extraction output: a .json/.txt/.md file or a directory.")],
    db_path: DbPathOption = DEFAULT_DB_PATH,
    model: ModelOption = DEFAULT_MODEL_NAME,
    space: Annotated[str, Option(help="Distance metric: cosine or l2.")] = "cosine",
    skip_failures: Annotated[
        bool,
        Option("--skip-failures", help="Skip documents that fail to embed instead of aborting."),
    ] = False,
    verbose: Annotated[bool, Option("--verbose", "-v")] = False,
) -> None:
    """Build the index from a corpus and write it to the index directory."""
    configure_logging(verbose)

    try:
        documents = DocumentLoader().load(corpus)
    except (FileNotFoundError, ValueError) as error:
        display_error(str(error))
        raise Exit(code=1)

    if not documents:
        display_error(f"No supported documents found in '{corpus}'.")
        raise Exit(code=1)

    policy = IndexingErrorPolicy.SKIP if skip_failures else IndexingErrorPolicy.ABORT
    try:
        engine = build_engine(db_path, model, space)
        report = engine.index_documents(documents, on_error=policy)
    except (SearchEngineError, ValueError) as error:
        display_error(str(error))
        raise Exit(code=1)

    display_indexing_report(report)


@app.command()
def search(
    query: Annotated[Optional[str], Argument(help="Query text. Omit for interactive mode.")] = None,
    top_k: Annotated[int, Option("--top-k", "-k", min=1)] = DEFAULT_TOP_K,
    db_path: DbPathOption = DEFAULT_DB_PATH,
    model: ModelOption = DEFAULT_MODEL_NAME,
    verbose: Annotated[bool, Option("--verbose", "-v")] = False,
) -> None:
    """Search the index once, or interactively when no query is given."""
    configure_logging(verbose)
    engine = build_engine(db_path, model)

    if query is not None:
        if not _run_query(engine, query, top_k):
            raise Exit(code=1)
        return

    display_welcome_banner()
    while True:
        _run_query(engine, prompt_for_query(), top_k)
        if not ask_continue():
            break


@app.command()
def stats(
    db_path: DbPathOption = DEFAULT_DB_PATH,
    model: ModelOption = DEFAULT_MODEL_NAME,
) -> None:
    """Show document count, dimension and model of the persisted index."""
    configure_logging()
    display_stats(build_engine(db_path, model).get_stats())


@app.command()
def bookmarks(
    db_path: DbPathOption = DEFAULT_DB_PATH,
    model: ModelOption = DEFAULT_MODEL_NAME,
) -> None:
    """List the manual's sections in page order."""
    configure_logging()
    try:
        entries = build_engine(db_path, model).list_bookmarks()
    except SearchEngineError as error:
        display_error(str(error))
        raise Exit(code=1)
    display_bookmarks(entries)


def _run_query(engine: SemanticSearchEngine, query: str, top_k: int) -> bool:
    try:
        results = engine.search(query, top_k)
    except (SearchEngineError, ValueError) as error:
        display_error(str(error))
        return False
    display_results(query, results)
    return True


if __name__ == "__main__":
    app()
