"""
REST API for ntpcheck

Exposes a single SNTP query over HTTP so other services can check a
time source without speaking UDP themselves.
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, Union

import structlog
from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from ntpcheck.client import query_server
from ntpcheck.config.settings import settings
from ntpcheck.sntp.errors import ProtocolError, TransportError, TransportErrorKind
from ntpcheck.sntp.result import OffsetAction, OffsetPolicy

logger = structlog.get_logger(__name__)


class QueryResponse(BaseModel):
    """Decoded server reply with offset and delay"""
    server: str
    address: str
    leap_indicator: int
    leap_text: Optional[str] = None
    version_number: int
    mode: int
    mode_text: Optional[str] = None
    stratum: int
    stratum_text: Optional[str] = None
    poll_interval: int
    poll_interval_seconds: float
    precision: int
    precision_seconds: float
    root_delay: float
    root_dispersion: float
    reference_identifier: Union[str, float, None] = None
    reference_kind: str
    reference_host: Optional[str] = None
    reference_timestamp: float
    offset_millis: float = Field(..., description="Estimated local clock offset")
    delay_millis: float = Field(..., description="Round-trip delay excluding server time")
    estimated_server_time: str
    t1_millis: float
    t2_millis: float
    t3_millis: float
    t4_millis: float
    t1_local: str
    t2_local: str
    t3_local: str
    t4_local: str
    offset_breach: Optional[Dict[str, Any]] = None
    failed: bool = False


class HealthResponse(BaseModel):
    status: str
    default_server: str


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting ntpcheck API", default_server=settings.NTP_SERVER, timeout=settings.NTP_TIMEOUT)
    yield
    logger.info("Shutting down ntpcheck API")


app = FastAPI(
    title="ntpcheck API",
    description="SNTP offset and delay checks over HTTP",
    version="1.0.0",
    lifespan=lifespan,
)


@app.get("/", tags=["General"])
async def root():
    """Root endpoint"""
    return {
        "message": "ntpcheck API",
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health", response_model=HealthResponse, tags=["General"])
async def health():
    return HealthResponse(status="ok", default_server=settings.NTP_SERVER)


@app.get("/query", response_model=QueryResponse, tags=["NTP"])
def query(
    server: Optional[str] = Query(default=None, description="Server to query (default: configured server)"),
    fallback: Optional[str] = Query(default=None, description="Pre-resolved address tried if the name fails"),
    no_dns: Optional[bool] = Query(default=None, description="Skip reverse DNS of the reference identifier"),
    max_offset: Optional[float] = Query(default=None, ge=0, description="Maximum acceptable |offset| in ms"),
    action: Optional[OffsetAction] = Query(default=None, description="Offset breach handling"),
):
    """
    Query one NTP server

    - **server**: host name or address (port from configuration)
    - **max_offset** / **action**: offset threshold policy; a breach with
      action ``fail`` sets ``failed`` in the response body
    """
    target = server or settings.NTP_SERVER
    policy = OffsetPolicy(
        max_offset_millis=max_offset if max_offset is not None else settings.NTP_MAX_OFFSET_MS,
        action=action or OffsetAction(settings.NTP_OFFSET_ACTION),
    )
    try:
        result = query_server(target, fallback, no_dns=no_dns, policy=policy)
    except TransportError as e:
        status = 504 if e.kind is TransportErrorKind.TIMEOUT else 502
        raise HTTPException(status_code=status, detail={"kind": e.kind.value, "message": str(e)})
    except ProtocolError as e:
        raise HTTPException(status_code=502, detail={"kind": e.kind.value, "message": str(e)})

    return QueryResponse(**result.to_dict())


# Run with: uvicorn ntpcheck.api.rest_api:app --host 0.0.0.0 --port 8000
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "ntpcheck.api.rest_api:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level="info",
    )
