"""FastAPI application for the bulk listing pipeline."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..pipeline.errors import GroupNotFoundError, InvalidListingEdit, PipelineError
from .routers import batches

logger = logging.getLogger(__name__)

app = FastAPI(title="Bulklist API", version="0.1.0")

app.include_router(batches.router, prefix="/api/batches", tags=["batches"])


@app.exception_handler(GroupNotFoundError)
async def group_not_found_handler(request: Request, exc: GroupNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidListingEdit)
async def invalid_edit_handler(request: Request, exc: InvalidListingEdit):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(PipelineError)
async def pipeline_error_handler(request: Request, exc: PipelineError):
    logger.warning(f"{request.method} {request.url.path} refused: {exc}")
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.get("/health")
def health():
    """Health check."""
    return {"status": "healthy"}
