"""Query several time sources concurrently.

Each target runs in its own worker thread with its own socket; a failure
for one target is captured in that target's outcome and does not affect
the others.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Union

import structlog

from ntpcheck.client import query_server
from ntpcheck.config.settings import Settings, settings
from ntpcheck.config.targets import Target
from ntpcheck.sntp.errors import NtpError
from ntpcheck.sntp.result import NtpResult

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class QueryOutcome:
    target: Target
    result: Optional[NtpResult] = None
    error: Optional[NtpError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.result is not None and not self.result.failed


def _run_one(target: Target, query: Callable[..., NtpResult], kwargs: dict) -> QueryOutcome:
    if target.port is not None:
        kwargs = {**kwargs, "port": target.port}
    # Worker threads interleave; tag every line logged for this target
    with structlog.contextvars.bound_contextvars(target=target.server, target_port=kwargs.get("port")):
        try:
            result = query(target.server, target.fallback, **kwargs)
        except NtpError as e:
            return QueryOutcome(target=target, error=e)
    return QueryOutcome(target=target, result=result)


def query_many(
    targets: Sequence[Union[Target, str]],
    max_workers: Optional[int] = None,
    config: Settings = settings,
    query: Callable[..., NtpResult] = query_server,
    **kwargs,
) -> List[QueryOutcome]:
    """Query every target and return outcomes in input order."""
    normalized = [t if isinstance(t, Target) else Target(server=t) for t in targets]
    if not normalized:
        return []
    kwargs.setdefault("config", config)
    workers = min(max_workers or config.MAX_WORKERS, len(normalized))

    logger.info("fan-out start", targets=len(normalized), workers=workers)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ntpcheck") as pool:
        futures = [pool.submit(_run_one, target, query, kwargs) for target in normalized]
        outcomes = [future.result() for future in futures]

    failed = sum(1 for outcome in outcomes if not outcome.ok)
    logger.info("fan-out complete", targets=len(outcomes), failed=failed)
    return outcomes
