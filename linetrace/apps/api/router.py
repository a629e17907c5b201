import json

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from linetrace.config.settings import Settings, get_settings
from linetrace.dependencies import get_engine
from linetrace.errors import EngineError, ErrorCategory
from linetrace.models import AnalysisResult
from linetrace.schemas import AnalysisRequest
from linetrace.services.attribution_engine import AttributionEngine

router = APIRouter(prefix="/attribution", tags=["attribution"])


def _status_code(error: EngineError) -> int:
    return 422 if error.category == ErrorCategory.INPUT else 500


@router.post("/analyze", response_model=AnalysisResult)
async def analyze(
    request: AnalysisRequest,
    engine: AttributionEngine = Depends(get_engine),
    settings: Settings = Depends(get_settings),
):
    """Run the attribution over a revision range and return the full result."""
    from_revision, to_revision = request.resolve(settings)
    try:
        return await engine.analyze(from_revision, to_revision)
    except EngineError as e:
        raise HTTPException(status_code=_status_code(e), detail=e.to_dict())


@router.post("/analyze/stream")
async def analyze_stream(
    request: AnalysisRequest,
    engine: AttributionEngine = Depends(get_engine),
    settings: Settings = Depends(get_settings),
):
    """Run the attribution with streaming progress updates."""
    from_revision, to_revision = request.resolve(settings)

    async def generate_progress():
        async for event in engine.analyze_stream(from_revision, to_revision):
            yield f"data: {json.dumps(event)}\n\n"

    return StreamingResponse(
        generate_progress(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )
