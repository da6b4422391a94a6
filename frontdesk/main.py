# frontdesk/main.py

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from frontdesk.config import ALLOWED_ORIGINS
from frontdesk.exceptions import PreconditionViolation
from frontdesk.logging_config import setup_logging
from frontdesk.middleware import RequestIDMiddleware
from frontdesk.routes.frontdesk import router as frontdesk_router
from frontdesk.routes.health import router as health_router
from frontdesk.routes.metrics import router as metrics_router

setup_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Front Desk API",
    description="Stays, folios and checkout decisions derived from hotel backend snapshots",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS if "*" not in ALLOWED_ORIGINS else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIDMiddleware)


@app.exception_handler(PreconditionViolation)
async def precondition_violation_handler(request: Request, exc: PreconditionViolation) -> JSONResponse:
    """Blocked transitions are 409s that name every blocker."""
    logger.info("precondition_violation", path=request.url.path, blockers=[b.value for b in exc.blockers])
    return JSONResponse(status_code=409, content=exc.to_dict())


app.include_router(health_router, tags=["Health"])
app.include_router(metrics_router, tags=["Metrics"])
app.include_router(frontdesk_router, prefix="/frontdesk", tags=["Front desk"])
