"""Cron endpoints, protected by ``CRON_SECRET``.

- GET /cron/cdn-warmup - Run one CDN warmup pass over the newest catalog
  artwork. Intended to be called every 30 minutes by an external
  scheduler with ``Authorization: Bearer <CRON_SECRET>``.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from starlette.responses import JSONResponse

from cinevault.api.deps import get_warmup_job, require_cron_secret
from cinevault.api.schemas.responses import CdnWarmupResponse
from cinevault.services.warmup_job import CdnWarmupJob

logger = logging.getLogger(__name__)

router = APIRouter(tags=["cron"], dependencies=[Depends(require_cron_secret)])

_DEFAULT_LIMIT = 400
_DEFAULT_CONCURRENCY = 10


def _parse_int(value: Optional[str], fallback: int) -> Optional[int]:
    """Lenient integer parsing; unparsable or zero input uses *fallback*."""
    if value is None:
        return None
    try:
        parsed = int(value.strip())
    except ValueError:
        return fallback
    return parsed or fallback


@router.get(
    "/cron/cdn-warmup",
    response_model=CdnWarmupResponse,
    response_model_exclude_none=True,
    responses={
        207: {"description": "Run finished but some scopes failed"},
        401: {"description": "Missing or wrong cron secret"},
    },
)
async def run_cdn_warmup(
    scope: Optional[str] = Query(
        default=None, description="movies | collections | series | all (alias: both)"
    ),
    limit: Optional[str] = Query(default=None, description="Rows per entity (1-5000)"),
    concurrency: Optional[str] = Query(default=None, description="Parallel requests (1-24)"),
    job: CdnWarmupJob = Depends(get_warmup_job),
) -> JSONResponse:
    """Run one CDN warmup pass.

    Unknown scopes fall back to the configured default scope. Returns 200 when every scope succeeded and 207 when some scopes
    failed; the failures are listed in ``errors``.
    """
    try:
        result = await job.run(
            scope=scope,
            limit=_parse_int(limit, _DEFAULT_LIMIT),
            concurrency=_parse_int(concurrency, _DEFAULT_CONCURRENCY),
        )
    except Exception as e:
        logger.error("CDN warmup run failed: %s", e, exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "CDN warmup failed", "message": str(e)},
        )

    body = CdnWarmupResponse(
        ok=result.ok,
        warmed=result.warmed,
        scope=result.scope.value,
        limit=result.limit,
        concurrency=result.concurrency,
        errors=result.errors or None,
    )
    return JSONResponse(
        status_code=207 if result.errors else 200,
        content=body.model_dump(exclude_none=True),
    )
