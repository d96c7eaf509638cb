"""Script to build the retrieval corpus from local PDF files.

Each PDF is split into pages with pdfplumber, tagged with
[DOCUMENT: name | PAGE: N] markers and uploaded to the OpenAI vector
store. Prints the vector store id to put in .env.

Usage:
    python scripts/build_corpus.py docs/Policies001.pdf docs/Annex.pdf
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from pagecite.core.config import get_config
from pagecite.core.exceptions import AppError
from pagecite.core.logging import setup_logging
from pagecite.corpus.catalog import CorpusCatalog
from pagecite.corpus.indexer import OpenAICorpusIndexer
from pagecite.corpus.models import Page
from pagecite.corpus.parser import extract_page_texts
from pagecite.corpus.service import CorpusService
from pagecite.corpus.tagger import sanitize_document_name


async def build_corpus(pdf_paths: list[Path], keep_names: bool = False) -> int:
    """Tag and upload every PDF; return a process exit code."""
    setup_logging(log_level="INFO")

    config = get_config()
    if not config.upstream.api_key:
        print("ERROR: UPSTREAM_API_KEY is not set")
        return 1

    missing = [path for path in pdf_paths if not path.is_file()]
    if missing:
        for path in missing:
            print(f"ERROR: {path} not found")
        return 1

    indexer = OpenAICorpusIndexer(config.upstream)
    service = CorpusService(indexer=indexer, catalog=CorpusCatalog())

    try:
        vector_store_id = await indexer.ensure_vector_store()
        print(f"Vector store: {vector_store_id}")

        for path in pdf_paths:
            name = path.name if keep_names else sanitize_document_name(path.name)
            print(f"\nReading: {path} -> {name}")

            page_texts = extract_page_texts(path)
            pages = [
                Page(document_name=name, page_number=number, text=text)
                for number, text in enumerate(page_texts, start=1)
            ]
            print(f"   Total pages: {len(page_texts)}")
            print(f"   Pages with text: {sum(1 for text in page_texts if text)}")

            result = await service.ingest(name, pages)
            print(f"   Tagged size: {result.blob_length / 1024:.0f} KB")
            print(f"   Indexed as: {result.entry.index_file_id}")

    except (AppError, ValueError) as e:
        print(f"Error building corpus: {e}")
        return 1

    print("\nDone. Add to .env:")
    print(f"   UPSTREAM_VECTOR_STORE_ID={vector_store_id}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Tag PDFs by page and upload them for retrieval")
    parser.add_argument("pdfs", nargs="+", type=Path, help="PDF files to index")
    parser.add_argument(
        "--keep-names",
        action="store_true",
        help="Use file names as-is instead of sanitizing them",
    )
    args = parser.parse_args()
    return asyncio.run(build_corpus(args.pdfs, keep_names=args.keep_names))


if __name__ == "__main__":
    sys.exit(main())
