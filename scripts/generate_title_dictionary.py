import argparse
import os
import sys

# Ensure src is in pythonpath
sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from dotenv import load_dotenv
load_dotenv()

from blog_rag_server.config import settings
from blog_rag_server.rag.ingest import BLOG_PATTERNS, discover_candidates
from blog_rag_server.rag.titles import build_title_dictionary


def main():
    parser = argparse.ArgumentParser(description="Generate the zh -> en title dictionary.")
    parser.add_argument("--content-dir", default=settings.content_dir)
    parser.add_argument("--output", default=settings.title_dictionary_path)
    args = parser.parse_args()

    print("Generating title translation dictionary...")
    blog_paths = discover_candidates(args.content_dir, BLOG_PATTERNS)
    dictionary, report = build_title_dictionary(args.content_dir, blog_paths)
    dictionary.save(args.output)

    print(f"Bilingual pairs: {report.pairs}")
    print(f"Chinese only: {report.chinese_only}")
    print(f"English only: {report.english_only}")
    if report.failed:
        print(f"Failed: {report.failed}")
    print(f"Dictionary saved to: {args.output}")

if __name__ == "__main__":
    main()
