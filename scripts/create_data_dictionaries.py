"""Draft a data dictionary for every CSV distribution on a DKAN site.

Reads DKAN_URL / DKAN_USER / DKAN_PASS (or DKAN_TOKEN) from the environment
or a .env file.
"""

from __future__ import annotations

import asyncio
import logging
import re
import sys
from typing import List

import httpx

from dkan_client.config import ClientConfig
from dkan_client.errors import DkanApiError
from dkan_client.logging import configure_logging
from dkan_client.services.dictionary_builder import (
    CsvDistribution,
    build_dictionary,
    csv_distributions,
    fetch_bytes,
    infer_fields,
)
from dkan_client.sources.dkan import DkanApiClient

logger = logging.getLogger("create_data_dictionaries")

_HOST_PREFIX = re.compile(r"^https?://[^/]+")


async def collect_distributions(client: DkanApiClient) -> List[CsvDistribution]:
    datasets = await client.list_all_datasets()
    print(f"Found {len(datasets)} datasets")
    found: List[CsvDistribution] = []
    for dataset in datasets:
        identifier = dataset.get("identifier")
        if not identifier:
            continue
        try:
            detailed = await client.get_dataset(identifier, show_reference_ids=True)
        except DkanApiError as exc:
            logger.warning("dataset_fetch_failed", extra={"dataset": identifier, "error": exc.message})
            continue
        found.extend(csv_distributions(detailed))
    print(f"Found {len(found)} CSV distributions")
    return found


async def main() -> int:
    configure_logging()
    config = ClientConfig.from_settings()
    print(f"DKAN: {config.base_url} (auth {'enabled' if config.credential else 'disabled'})")
    created = skipped = errors = 0
    async with DkanApiClient(config) as client:
        try:
            distributions = await collect_distributions(client)
        except DkanApiError as exc:
            print(f"Error: {exc.message}", file=sys.stderr)
            return 1

        for distribution in distributions:
            print(f"- {distribution.title or distribution.identifier} ({distribution.dataset_title})")
            # distributions may advertise the public hostname; fetch through the configured one
            url = _HOST_PREFIX.sub(config.base_url, distribution.download_url)
            try:
                fields = infer_fields(await fetch_bytes(url))
            except httpx.HTTPError as exc:
                print(f"  skipped: could not download CSV ({exc})")
                skipped += 1
                continue
            if not fields:
                print("  skipped: could not analyze CSV")
                skipped += 1
                continue
            try:
                await client.create_data_dictionary(build_dictionary(distribution, fields))
            except DkanApiError as exc:
                print(f"  failed: {exc.message}")
                errors += 1
                continue
            print(f"  created {distribution.identifier}-dict with {len(fields)} fields")
            created += 1

    print(f"Created: {created}  Skipped: {skipped}  Errors: {errors}")
    if created:
        print(f"View them at: {config.base_url}/admin/dkan/data-dictionary")
    return 1 if errors else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
