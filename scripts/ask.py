#!/usr/bin/env python
"""Ingest documents and ask a question about them.

The index lives in memory, so ingestion and the question run in one process.

Usage:
    python scripts/ask.py report.pdf notes.md -q "What were the Q3 results?"
    python scripts/ask.py docs/*.pdf -q "pricing" --search-only
    python scripts/ask.py docs/*.pdf --verbose     # Ingest only, show summary
"""
import argparse
import asyncio
import sys
from pathlib import Path
from datetime import datetime

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from docchat import config
from docchat.errors import EmbeddingFailed, GenerationFailed
from docchat.generation import OllamaGenerator
from docchat.llm_client import OllamaClient
from docchat.log_config import configure_logging
from docchat.rag.pipeline import create_pipeline
from docchat.rag.retriever import build_messages
import structlog

logger = structlog.get_logger()


class ProgressReporter:
    """Simple progress reporter for CLI."""

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.start_time = None

    def start(self, message: str):
        """Start progress reporting."""
        self.start_time = datetime.now()
        print(f"\n{'=' * 60}")
        print(f"  {message}")
        print(f"{'=' * 60}\n")

    def update(self, current: int, total: int, name: str):
        """Update progress."""
        percentage = (current / total) * 100 if total > 0 else 0
        bar_length = 40
        filled = int(bar_length * current / total) if total > 0 else 0
        bar = "█" * filled + "░" * (bar_length - filled)

        print(
            f"\r  [{bar}] {percentage:5.1f}% ({current}/{total}) {name[:30]:<30}",
            end="",
            flush=True,
        )

        if self.verbose:
            print()

    def finish(self, stats: dict):
        """Finish progress reporting."""
        print("\n")
        elapsed_seconds = (datetime.now() - self.start_time).total_seconds()

        print(f"{'=' * 60}")
        print("  Ingestion Complete")
        print(f"{'=' * 60}\n")
        print(f"  Documents processed:  {stats['documents_processed']}")
        print(f"  Documents failed:     {stats['documents_failed']}")
        print(f"  Chunks created:       {stats['chunks_created']}")
        print(f"  Vectors stored:       {stats['vectors_stored']}")
        print(f"  Chunk failures:       {stats['chunk_failures']}")
        print(f"  Time elapsed:         {elapsed_seconds:.1f}s")

        if stats["vectors_stored"] > 0 and elapsed_seconds > 0:
            rate = stats["vectors_stored"] / elapsed_seconds
            print(f"  Indexing rate:        {rate:.1f} chunks/sec")

        print(f"\n{'=' * 60}\n")

        for result in stats["results"]:
            if "error" in result:
                print(f"  Skipped {result['filename']}: {result['error']}")
            elif result["failures"]:
                indexes = ", ".join(str(f["index"]) for f in result["failures"])
                print(f"  {result['filename']}: chunks not embedded: {indexes}")


def print_results(results):
    for i, result in enumerate(results, 1):
        preview = result.text[:160] + ("..." if len(result.text) > 160 else "")
        print(f"  {i}. [{result.similarity:.3f}] {result.source}")
        print(f"     {preview}\n")


async def main():
    """Main entry point for the ask script."""
    parser = argparse.ArgumentParser(
        description="Ingest documents and ask a question about them",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/ask.py report.pdf -q "What is the revenue?"
  python scripts/ask.py docs/*.pdf -q "pricing" --search-only
        """,
    )

    parser.add_argument("files", nargs="+", type=Path, help="Documents to ingest")
    parser.add_argument("--query", "-q", help="Question to ask after ingestion")
    parser.add_argument(
        "--search-only",
        action="store_true",
        help="Print ranked excerpts instead of generating an answer",
    )
    parser.add_argument(
        "--top-k",
        type=int,
        default=config.RETRIEVAL_TOP_K,
        help=f"Number of excerpts to retrieve (default: {config.RETRIEVAL_TOP_K})",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show verbose progress output",
    )

    args = parser.parse_args()

    configure_logging("DEBUG" if args.verbose else "WARNING")
    progress = ProgressReporter(verbose=args.verbose)

    try:
        print("\nConfiguration:")
        print(f"   Embedding model:  {config.EMBEDDING_MODEL}")
        print(f"   Chat model:       {config.CHAT_MODEL}")
        print(f"   Chunk size:       {config.CHUNK_SIZE} chars")
        print(f"   Chunk overlap:    {config.CHUNK_OVERLAP} chars")
        print(f"   Top-K retrieval:  {args.top_k}")

        client = OllamaClient()
        pipeline = create_pipeline(client)

        progress.start(f"Ingesting {len(args.files)} document(s)")
        stats = await pipeline.ingest_files(args.files, progress_callback=progress.update)
        progress.finish(stats)

        if not args.query:
            sys.exit(1 if stats["documents_failed"] else 0)

        if len(pipeline.vector_store) == 0:
            print("No documents ingested - nothing to search.\n")
            sys.exit(1)

        try:
            results = await pipeline.retrieve(args.query, top_k=args.top_k)
        except EmbeddingFailed as e:
            print(f"Search failed: {e}\n")
            sys.exit(1)

        if not results:
            print("No relevant results.\n")
            sys.exit(0)

        if args.search_only:
            print_results(results)
            return

        generator = OllamaGenerator(client)
        completion = await generator.complete(build_messages(args.query, results))

        print(f"{completion['content']}\n")
        print("Sources:")
        print_results(results)

    except KeyboardInterrupt:
        print("\n\nCancelled by user.\n")
        sys.exit(1)

    except GenerationFailed as e:
        print(f"\nAnswer generation failed: {e}\n")
        sys.exit(1)

    except Exception as e:
        print(f"\nError: {e}\n")
        logger.error("ask_script_failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
