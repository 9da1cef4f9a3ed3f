"""
FastAPI Dependencies

All object creation happens here, not per request.
This module wires the profiler, its storage and its collectors.

RULE: Routes and middleware share exactly one Profiler per process.
"""

import logging
from functools import lru_cache, partial

from app.core.config import settings
from collectors import load_collectors
from profiler.client_ip import resolve_client_ip
from profiler.profiler import Profiler
from profiler.storage import create_storage


@lru_cache(maxsize=1)
def get_profiler() -> Profiler:
    """
    Create and cache the Profiler singleton.

    All components are wired here:
    - Storage: built from settings.dsn
    - Collectors: from settings.collectors_file, else the defaults
    - IP resolution: honours settings.trusted_proxies

    Returns:
        Profiler: The process-wide profiler.
    """
    storage = create_storage(settings.dsn, lifetime=settings.lifetime or None)

    profiler = Profiler(
        storage=storage,
        logger=logging.getLogger("profiler"),
        enabled=settings.enabled,
        ip_resolver=partial(resolve_client_ip, trusted_proxies=tuple(settings.trusted_proxies)),
    )
    profiler.set(load_collectors(settings.collectors_file))

    return profiler
