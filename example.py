# example.py
# A small example demonstrating how to use the batch_analyzer
# library to audit a few pages and then read their history back.

import asyncio
import logging

from batch_analyzer import RunSettings, load_collections, progression, run_batch

# --- Configuration ---
# You can enable logging to see the orchestrator's progress.
logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

REPORTS_DIR = "reports"
URLS = [
    "https://example.com/",
    "https://example.com/about",
]


async def main():
    """
    Audit the URLs once, then print every collection and one URL's trend.
    Requires the `lighthouse` CLI and Chrome to be installed.
    """
    settings = RunSettings(report_prefix="page")
    result = await run_batch("example", URLS, REPORTS_DIR, settings)
    print(f"[*] {result.succeeded}/{result.attempted} reports in {result.run_dir}")

    for collection in load_collections(REPORTS_DIR):
        last = collection.last_run
        print(f"\n{collection.name}: {len(collection.runs)} runs, last score {last.avg_score}")

        for point in progression(collection, URLS[0]):
            print(f"  {point.timestamp}  overall={point.overall}")


if __name__ == "__main__":
    asyncio.run(main())
