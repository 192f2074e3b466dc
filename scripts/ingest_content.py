import argparse
import asyncio
import logging
import os
import sys

# Ensure src is in pythonpath
sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from dotenv import load_dotenv
load_dotenv()

from blog_rag_server.config import settings
from blog_rag_server.embeddings.embedder import Embedder
from blog_rag_server.rag.ingest import IngestionPipeline
from blog_rag_server.vectors import AdminApiStore, FaissVectorStore


def parse_args():
    parser = argparse.ArgumentParser(description="Index the blog content tree into the vector store.")
    parser.add_argument("--content-dir", default=settings.content_dir)
    parser.add_argument("--dry-run", action="store_true", help="Resolve and chunk only; no embedding or upload.")
    parser.add_argument("--full-reindex", action="store_true", help="Clear the store before indexing.")
    parser.add_argument(
        "--server-url",
        default=settings.server_url,
        help="Running chat server to upload to via /admin routes. Without it the local FAISS files are written and the server must be stopped.",
    )
    return parser.parse_args()


async def main():
    args = parse_args()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    print("Initializing clients...")
    if args.server_url:
        print(f"Uploading to {args.server_url}")
        store = AdminApiStore(args.server_url, settings.admin_token.get_secret_value())
    else:
        print("No server URL configured; writing local FAISS files (stop the chat server first)")
        store = FaissVectorStore()
        store.load()
    embedder = None if args.dry_run else Embedder()

    pipeline = IngestionPipeline(store, embedder, content_root=args.content_dir)
    report = await pipeline.run(dry_run=args.dry_run, full_reindex=args.full_reindex)

    print(f"Files: {report.processed}/{report.selected} processed ({report.candidates} candidates)")
    print(f"Chunks: {report.items}")
    if report.skipped:
        print(f"Skipped (draft or empty): {len(report.skipped)}")
    if report.failed_items:
        print(f"Upload failures: {report.failed_items} items")
    if report.failed:
        print(f"Failed: {len(report.failed)}")
        for path in report.failed:
            print(f"  - {path}")
    print("Done!")

if __name__ == "__main__":
    asyncio.run(main())
