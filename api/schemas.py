"""
Schema Generation API

Endpoints:
- POST /api/schemas/generate - Generate JSON-LD for one URL
- POST /api/schemas/batch - Generate for up to MAX_BATCH_URLS URLs
- POST /api/schemas/batch/stream - Same, as server-sent events
- POST /api/schemas/{record_id}/refine - Refine a generated schema
- POST /api/schemas/{record_id}/score - Rescore hand-edited candidates
- DELETE /api/schemas/{record_id} - Soft delete (allows one regeneration)
- GET /api/schemas/{record_id} - Get one record
- POST /api/schemas/score/preview - Score a candidate without saving
- POST /api/schemas/validate - Shape-validate candidates
- POST /api/schemas/extract - JSON-LD already published on a page
- GET /api/schemas/history - Paginated generation history
- GET /api/schemas/stats - Generation statistics
- GET /api/schemas/failures - Failures grouped by reason and stage
"""

import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from schemaforge.billing import InsufficientFunds
from schemaforge.database import record_to_dict
from schemaforge.integrations import AnalyzerError
from schemaforge.models import (
    GenerationRequest,
    RecordAccessDenied,
    RecordNotFound,
    SchemaForgeError,
)
from schemaforge.pipeline import FailureReason
from schemaforge.refinement import RefinementConflict
from schemaforge.scoring import ComplianceSignal
from schemaforge.utils import is_valid_http_url

from .dependencies import Services, get_account_id, get_services

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/schemas", tags=["Schemas"])


# =============================================================================
# REQUEST MODELS
# =============================================================================

class GenerateBody(BaseModel):
    """Request to generate schema for one URL."""
    url: str
    schema_type: str = Field(default="Auto", description="Schema.org type or 'Auto'")
    options: Dict[str, Any] = Field(default_factory=dict)


class BatchBody(BaseModel):
    urls: List[str] = Field(..., min_length=1)
    schema_type: str = "Auto"
    options: Dict[str, Any] = Field(default_factory=dict)


class RefineBody(BaseModel):
    candidates: Optional[List[Dict[str, Any]]] = None
    url: Optional[str] = None
    options: Dict[str, Any] = Field(default_factory=dict)


class CandidatesBody(BaseModel):
    candidates: List[Dict[str, Any]] = Field(..., min_length=1)


class PreviewBody(BaseModel):
    candidate: Dict[str, Any]
    error_count: Optional[int] = Field(default=None, ge=0)
    warning_count: Optional[int] = Field(default=None, ge=0)


class ExtractBody(BaseModel):
    url: str


# =============================================================================
# ERROR MAPPING
# =============================================================================

ERROR_STATUS = {
    RecordNotFound: status.HTTP_404_NOT_FOUND,
    RecordAccessDenied: status.HTTP_403_FORBIDDEN,
    RefinementConflict: status.HTTP_409_CONFLICT,
    InsufficientFunds: status.HTTP_402_PAYMENT_REQUIRED,
}

FAILURE_STATUS = {
    FailureReason.INSUFFICIENT_CREDITS.value: status.HTTP_402_PAYMENT_REQUIRED,
    FailureReason.CONTENT_MISMATCH.value: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def _http_error(error: SchemaForgeError) -> HTTPException:
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=error.to_dict())
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error.to_dict())


# =============================================================================
# GENERATION
# =============================================================================

@router.post("/generate")
async def generate_schema(
    body: GenerateBody,
    account_id: str = Depends(get_account_id),
    services: Services = Depends(get_services),
):
    """
    Generate JSON-LD for a URL.

    Returns 402 on insufficient credits, 422 when the page cannot support
    the requested type (with suggested alternatives), 400 otherwise.
    """
    try:
        request = GenerationRequest(
            url=body.url,
            requested_type=body.schema_type,
            account_id=account_id,
            options=body.options,
        )
        result = await services.orchestrator.generate(request)
    except SchemaForgeError as e:
        raise _http_error(e)

    if not result.success:
        status_code = FAILURE_STATUS.get(result.failure_reason, status.HTTP_400_BAD_REQUEST)
        raise HTTPException(status_code=status_code, detail=result.to_dict())

    return result.to_dict()


@router.post("/batch")
async def generate_batch(
    body: BatchBody,
    account_id: str = Depends(get_account_id),
    services: Services = Depends(get_services),
):
    """Generate schemas for several URLs sequentially."""
    try:
        summary = await services.batch.run(body.urls, body.schema_type, account_id, body.options)
    except SchemaForgeError as e:
        raise _http_error(e)
    return summary.to_dict()


@router.post("/batch/stream")
async def generate_batch_stream(
    body: BatchBody,
    account_id: str = Depends(get_account_id),
    services: Services = Depends(get_services),
):
    """Generate schemas for several URLs, streaming progress as server-sent events."""
    try:
        services.batch.check_size(body.urls)
    except SchemaForgeError as e:
        raise _http_error(e)

    async def event_stream():
        async for event in services.batch.iter_batch(body.urls, body.schema_type, account_id, body.options):
            yield f"data: {json.dumps(event, default=str)}\n\n"

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


# =============================================================================
# SCORING, VALIDATION, EXTRACTION (no billing)
# =============================================================================

@router.post("/score/preview")
async def preview_score(body: PreviewBody, services: Services = Depends(get_services)):
    """Score a candidate without touching the ledger or record store."""
    compliance = None
    if body.error_count is not None or body.warning_count is not None:
        compliance = ComplianceSignal(
            error_count=body.error_count or 0,
            warning_count=body.warning_count or 0,
        )
    score = services.orchestrator.preview_score(body.candidate, compliance)
    return score.to_dict()


@router.post("/validate")
async def validate_schemas(body: CandidatesBody, services: Services = Depends(get_services)):
    """Shape-validate candidates."""
    validator = services.orchestrator.shape_validator
    results = validator.validate_many(body.candidates)
    return {
        "results": [result.to_dict() for result in results],
        "summary": validator.summarize(results),
    }


@router.post("/extract")
async def extract_schemas(body: ExtractBody, services: Services = Depends(get_services)):
    """Return JSON-LD already present on a page."""
    if not is_valid_http_url(body.url):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "invalid_request", "message": "URL must be an absolute http or https URL"},
        )
    try:
        schemas = await services.analyzer.extract_existing_schemas(body.url)
    except AnalyzerError as e:
        logger.info(f"Extraction failed for {body.url}: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": e.kind.value, "message": "Could not read schemas from this URL"},
        )
    return {"url": body.url, "schemas": schemas, "count": len(schemas)}


# =============================================================================
# HISTORY AND STATS
# =============================================================================

@router.get("/history")
async def get_history(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    include_deleted: bool = False,
    account_id: str = Depends(get_account_id),
    services: Services = Depends(get_services),
):
    return services.store.list_history(account_id, page, page_size, include_deleted)


@router.get("/stats")
async def get_stats(
    account_id: str = Depends(get_account_id),
    services: Services = Depends(get_services),
):
    return services.store.get_stats(account_id)


@router.get("/failures")
async def get_failures(
    account_id: str = Depends(get_account_id),
    services: Services = Depends(get_services),
):
    return services.store.get_failure_summary(account_id)


# =============================================================================
# RECORD OPERATIONS
# =============================================================================

@router.get("/{record_id}")
async def get_record(
    record_id: str,
    account_id: str = Depends(get_account_id),
    services: Services = Depends(get_services),
):
    try:
        record = services.store.get_owned(record_id, account_id)
    except SchemaForgeError as e:
        raise _http_error(e)
    return record_to_dict(record)


@router.post("/{record_id}/refine")
async def refine_schema(
    record_id: str,
    body: RefineBody,
    account_id: str = Depends(get_account_id),
    services: Services = Depends(get_services),
):
    """Refine a generated schema. Covered by the original generation's credit."""
    try:
        result = await services.orchestrator.refine(
            record_id,
            candidates=body.candidates,
            url=body.url,
            options=body.options,
            account_id=account_id,
        )
    except SchemaForgeError as e:
        raise _http_error(e)
    return result.to_dict()


@router.post("/{record_id}/score")
async def recalculate_score(
    record_id: str,
    body: CandidatesBody,
    account_id: str = Depends(get_account_id),
    services: Services = Depends(get_services),
):
    """Rescore hand-edited candidates and store them with the new score."""
    try:
        score = services.orchestrator.recalculate_score(record_id, body.candidates, account_id)
    except SchemaForgeError as e:
        raise _http_error(e)
    return {"record_id": record_id, "score": score.to_dict()}


@router.delete("/{record_id}")
async def delete_schema(
    record_id: str,
    account_id: str = Depends(get_account_id),
    services: Services = Depends(get_services),
):
    """Soft delete a schema type; it may then be regenerated exactly once."""
    try:
        record = services.orchestrator.delete_schema_type(record_id, account_id)
    except SchemaForgeError as e:
        raise _http_error(e)
    return {"deleted": True, "record": record_to_dict(record)}
