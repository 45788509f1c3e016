"""Command-line interface for ingesting, searching and deleting documents."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any

import anyio
from pydantic import ValidationError
from qdrant_client.http import models
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from vector_doc_store.config import Settings
from vector_doc_store.documents import Document, DocumentId
from vector_doc_store.embeddings.openai_client import OpenAIEmbeddings
from vector_doc_store.exceptions import VectorStoreError
from vector_doc_store.vector.qdrant_client import (
    QdrantDocumentStore,
    StoreConfig,
    create_qdrant_client,
)

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Vector document store CLI backed by Qdrant."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest_parser = subparsers.add_parser(
        "ingest", help="Add documents from a JSONL file."
    )
    ingest_parser.add_argument(
        "--input",
        type=Path,
        required=True,
        help="Path to JSONL file with one document per line.",
    )
    ingest_parser.add_argument(
        "--text-field",
        type=str,
        default="text",
        help="Field holding the document text.",
    )
    ingest_parser.add_argument(
        "--metadata-field",
        type=str,
        default="metadata",
        help="Field holding the document metadata object.",
    )
    ingest_parser.add_argument(
        "--id-field",
        type=str,
        default=None,
        help="Optional field holding document ids; existing ids are replaced.",
    )
    ingest_parser.add_argument(
        "--json", action="store_true", help="Emit ids as JSON to stdout."
    )

    search_parser = subparsers.add_parser("search", help="Run a similarity search.")
    search_parser.add_argument("--query", type=str, required=True, help="Query text.")
    search_parser.add_argument(
        "-k", type=int, default=4, help="Maximum number of results."
    )
    search_parser.add_argument(
        "--where",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Equality filter on a stored column (repeatable).",
    )
    search_parser.add_argument(
        "--json", action="store_true", help="Emit results as JSON to stdout."
    )

    delete_parser = subparsers.add_parser("delete", help="Delete documents.")
    target = delete_parser.add_mutually_exclusive_group(required=True)
    target.add_argument(
        "--id", dest="ids", action="append", help="Document id (repeatable)."
    )
    target.add_argument(
        "--where",
        action="append",
        metavar="KEY=VALUE",
        help="Equality filter on a stored column (repeatable).",
    )

    return parser.parse_args(argv)


def _load_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as exc:
        print("Configuration error:")
        for error in exc.errors():
            field = error.get("loc", ("unknown",))[0]
            msg = error.get("msg", "Invalid value")
            print(f"  {field}: {msg}")
        raise


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _build_filter(conditions: list[str]) -> models.Filter | None:
    """Build a conjunction of equality conditions from KEY=VALUE strings."""
    if not conditions:
        return None
    must: list[models.Condition] = []
    for condition in conditions:
        key, sep, value = condition.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid filter '{condition}', expected KEY=VALUE")
        must.append(
            models.FieldCondition(key=key, match=models.MatchValue(value=value))
        )
    return models.Filter(must=must)


def _read_documents(
    path: Path,
    text_field: str,
    metadata_field: str,
    id_field: str | None,
) -> tuple[list[Document], list[DocumentId] | None]:
    documents: list[Document] = []
    ids: list[DocumentId] = []
    with path.open(encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            record = json.loads(line)
            if text_field not in record:
                raise ValueError(f"Line {line_number}: missing field '{text_field}'")
            if id_field is not None:
                if id_field not in record:
                    raise ValueError(f"Line {line_number}: missing field '{id_field}'")
                value = record[id_field]
                ids.append(value if type(value) is int else str(value))
            documents.append(
                Document(
                    page_content=str(record[text_field]),
                    metadata=record.get(metadata_field) or {},
                )
            )
    return documents, (ids if id_field is not None else None)


def _parse_id(value: str) -> DocumentId:
    """Command-line ids are strings; digits name integer point ids."""
    return int(value) if value.isdecimal() else value


def _build_embeddings(settings: Settings) -> OpenAIEmbeddings:
    return OpenAIEmbeddings(
        api_key=settings.openai_api_key,
        model=settings.openai_embedding_model,
        dimensions=settings.embedding_dim,
        batch_size=settings.embedding_batch_size,
    )


async def _run_ingest(args: argparse.Namespace, settings: Settings) -> int:
    documents, ids = _read_documents(
        args.input, args.text_field, args.metadata_field, args.id_field
    )
    config = StoreConfig.from_settings(settings)
    client = create_qdrant_client(settings)
    async with _build_embeddings(settings) as embeddings:
        try:
            store = QdrantDocumentStore.from_config(client, embeddings, config)
            if documents and not await client.collection_exists(config.index_name):
                vector_size = settings.embedding_dim or len(
                    await embeddings.embed(documents[0].page_content)
                )
                await store.ensure_collection(vector_size)
            written = await store.add_documents(documents, ids=ids)
        finally:
            await client.close()

    if args.json:
        print(json.dumps({"collection": config.index_name, "ids": written}))
        return 0
    for point_id in written:
        print(point_id)
    print(f"Wrote {len(written)} documents to '{config.index_name}'")
    return 0


async def _run_search(args: argparse.Namespace, settings: Settings) -> int:
    query_filter = _build_filter(args.where)
    config = StoreConfig.from_settings(settings)
    client = create_qdrant_client(settings)
    async with _build_embeddings(settings) as embeddings:
        try:
            store = await QdrantDocumentStore.from_existing_collection(
                embeddings, config, client=client
            )
            results = await store.similarity_search_with_score(
                args.query, k=args.k, filter=query_filter
            )
        finally:
            await client.close()

    if args.json:
        payload = [
            {
                "id": document.id,
                "score": score,
                "page_content": document.page_content,
                "metadata": document.metadata,
            }
            for document, score in results
        ]
        print(json.dumps(payload))
        return 0

    table = Table(title=f"Results for '{args.query}'")
    table.add_column("Score", justify="right")
    table.add_column("Id")
    table.add_column("Text")
    table.add_column("Metadata")
    for document, score in results:
        table.add_row(
            f"{score:.4f}",
            "" if document.id is None else str(document.id),
            document.page_content,
            json.dumps(document.metadata),
        )
    Console().print(table)
    return 0


async def _run_delete(args: argparse.Namespace, settings: Settings) -> int:
    kwargs: dict[str, Any] = {}
    if args.ids:
        kwargs["ids"] = [_parse_id(value) for value in args.ids]
    else:
        kwargs["filter"] = _build_filter(args.where)

    config = StoreConfig.from_settings(settings)
    client = create_qdrant_client(settings)
    async with _build_embeddings(settings) as embeddings:
        try:
            store = await QdrantDocumentStore.from_existing_collection(
                embeddings, config, client=client
            )
            await store.delete(**kwargs)
        finally:
            await client.close()

    print(f"Deleted matching documents from '{config.index_name}'")
    return 0


_COMMANDS = {
    "ingest": _run_ingest,
    "search": _run_search,
    "delete": _run_delete,
}


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    try:
        settings = _load_settings()
    except ValidationError:
        return 1
    _configure_logging(settings.log_level)

    command = _COMMANDS.get(args.command)
    if command is None:
        return 1
    try:
        return anyio.run(command, args, settings)
    except (VectorStoreError, ValueError) as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
