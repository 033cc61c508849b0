"""Run every provider chain once so each identity has a cache entry."""

from __future__ import annotations

import argparse
import logging
from typing import Iterable

from dotenv import load_dotenv

from cerfreport.core.cache import CacheStore, build_store
from cerfreport.core.errors import ExhaustedError
from cerfreport.core.logging import setup_logger
from cerfreport.core.orchestrator import Orchestrator, RequestIdentity
from cerfreport.core.settings import load_settings
from cerfreport.core.util import humanize_timestamp
from cerfreport.providers import build_catalog

LOG = logging.getLogger("warm_cache")


def warm(orchestrator: Orchestrator, identities: Iterable[RequestIdentity]) -> int:
    """Fetch each identity; return how many ended with no data at all."""
    failures = 0
    for identity in identities:
        result = orchestrator.fetch(identity, force=True)
        try:
            result.raise_for_status()
        except ExhaustedError as exc:
            failures += 1
            LOG.warning("%s (%d provider errors)", exc, len(result.errors))
            continue
        stamp = humanize_timestamp(result.timestamp) if result.timestamp else "-"
        LOG.info("%s: source=%s written=%s", identity.cache_key, result.source, stamp)
    return failures


def main(argv: list[str] | None = None, store: CacheStore | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--category",
        action="append",
        default=[],
        help="Only warm this category (news, market, mini, links, substack); repeatable",
    )
    args = parser.parse_args(argv)

    load_dotenv()
    setup_logger()
    settings = load_settings()
    catalog = build_catalog(settings)
    store = store or build_store(
        settings.cache_backend, cache_dir=settings.cache_dir, database_url=settings.database_url
    )
    orchestrator = Orchestrator(
        catalog,
        store,
        credentials=settings.credentials,
        timeout=settings.request_timeout,
        budget=settings.request_budget,
    )
    wanted = {c.strip().lower() for c in args.category if c.strip()}
    identities = [i for i in catalog.identities() if not wanted or i.category in wanted]
    LOG.info("Warming %d identities", len(identities))
    return 1 if warm(orchestrator, identities) else 0


if __name__ == "__main__":
    raise SystemExit(main())
