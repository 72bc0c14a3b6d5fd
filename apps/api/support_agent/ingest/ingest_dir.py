from __future__ import annotations

import argparse
import logging
import os
import sys

from support_agent.core.errors import EmptyInputError
from support_agent.core.observability import configure_logging
from support_agent.schemas.content import utc_now_iso
from support_agent.services import build_document_manager

logger = logging.getLogger(__name__)

LOADER_EXTENSIONS = (".txt", ".md")


def find_documents(directory: str) -> list[str]:
    return sorted(
        name
        for name in os.listdir(directory)
        if name.lower().endswith(LOADER_EXTENSIONS)
        and os.path.isfile(os.path.join(directory, name))
    )


def ingest_directory(manager, directory: str, *, clear: bool = False) -> tuple[int, int]:
    """Ingest every text/markdown file of ``directory``; returns (documents, chunks)."""
    if clear:
        manager.clear_collection()

    files = find_documents(directory)
    if not files:
        logger.warning("no_documents_found", extra={"directory": directory})
        return 0, 0

    documents = 0
    total_chunks = 0
    for name in files:
        with open(os.path.join(directory, name), "r", encoding="utf-8") as f:
            text = f.read()
        try:
            result = manager.ingest_document(
                text,
                {"source": name, "filetype": name.rsplit(".", 1)[-1].lower(), "ingestedAt": utc_now_iso()},
            )
        except EmptyInputError:
            logger.warning("document_skipped_empty", extra={"file_name": name})
            continue
        documents += 1
        total_chunks += result.chunks_added
        print(f"Ingested {name}: {result.chunks_added} chunks (document ID {result.document_id})")
    return documents, total_chunks


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Ingest a directory of .txt/.md files into the vector DB")
    p.add_argument("--dir", default="sample_docs", help="Directory holding the documents")
    p.add_argument(
        "--clear",
        action="store_true",
        help="Drop the collection before ingesting",
    )
    args = p.parse_args(argv)

    configure_logging()
    if not os.path.isdir(args.dir):
        print(f"Not a directory: {args.dir}", file=sys.stderr)
        return 2

    pool, _, manager = build_document_manager()
    try:
        documents, chunks = ingest_directory(manager, args.dir, clear=args.clear)
    finally:
        pool.closeall()

    print(f"Total documents: {documents}")
    print(f"Total chunks: {chunks}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
