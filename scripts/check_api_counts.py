"""Print TourAPI totals per category next to the local row counts.

A quick synchronous check that the service key works before running a sync.

Usage:

    python scripts/check_api_counts.py
    python scripts/check_api_counts.py --english
"""

from __future__ import annotations

import argparse
import sys
import time

import requests

from tourdesk.catalog.categories import Category
from tourdesk.catalog.client import list_request, parse_tour_response, service_params
from tourdesk.core.config import get_settings
from tourdesk.store.sqlite import SQLiteLocalStore
from tourdesk.sync.counts import local_count


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Compare TourAPI totals with local catalog counts")
    parser.add_argument("--english", action="store_true", help="Also check the English catalog")
    parser.add_argument("--delay", type=float, default=0.2, help="Delay between requests (seconds)")
    return parser.parse_args()


def fetch_total(base_url: str, content_type_id: str, festival: bool) -> int | None:
    settings = get_settings()
    operation, params = list_request(settings.tourapi_area_code, content_type_id, page_no=1, page_size=1, festival=festival)
    params = {**service_params(settings.tourapi_service_key or "", settings.tourapi_mobile_app), **params}

    try:
        response = requests.get(f"{base_url.rstrip('/')}/{operation}", params=params, timeout=15)
        response.raise_for_status()
        _, total = parse_tour_response(response.json())
        return total
    except (requests.RequestException, ValueError) as exc:
        print(f"[warn] {operation} {content_type_id} failed: {exc}", file=sys.stderr)
        return None


def main() -> None:
    args = parse_args()
    settings = get_settings()
    if not settings.tourapi_service_key:
        print("TOURAPI_SERVICE_KEY is not set.", file=sys.stderr)
        sys.exit(1)

    store = SQLiteLocalStore(settings.database_path)
    for category in Category:
        descriptor = category.descriptor
        festival = category is Category.EVENT
        source_total = fetch_total(settings.tourapi_base_url, descriptor.content_type_id, festival)
        line = f"{descriptor.label_ko:<8} api={source_total} local={local_count(store, category)}"
        if args.english:
            time.sleep(max(0, args.delay))
            english_total = fetch_total(settings.tourapi_en_base_url, descriptor.english_content_type_id, festival)
            line += f" english={english_total}"
        print(line)
        time.sleep(max(0, args.delay))


if __name__ == "__main__":
    main()
