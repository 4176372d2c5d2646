"""
Run one synchronous crawl from the CLI and print the outcome.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
from dataclasses import asdict

from app.config import get_crawler_settings
from app.services.crawl_runner_service import get_crawl_runner_service
from db.models.client import Client
from db.session import SessionLocal


def main() -> int:
    parser = argparse.ArgumentParser(description="Crawl a client's site and write its audit.")
    parser.add_argument("--client-id", dest="client_id", type=int, required=True)
    parser.add_argument(
        "--url",
        dest="url",
        default=None,
        help="Root URL to crawl. Defaults to the client's stored URL.",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").strip().upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    if not get_crawler_settings().api_key:
        parser.error("SPIDER_API_KEY is not set.")

    url = args.url
    if url is None:
        with SessionLocal() as db:
            client = db.get(Client, args.client_id)
            if client is None:
                parser.error(f"Client {args.client_id} does not exist.")
            url = client.url

    runner = get_crawl_runner_service()
    result = runner.run(client_id=args.client_id, url=url)
    print(json.dumps(asdict(result), indent=2))
    return 0 if result.audit_id is not None else 1


if __name__ == "__main__":
    raise SystemExit(main())
