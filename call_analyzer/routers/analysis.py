"""
Analysis Router - Main API endpoints for Sales Call Analyzer.
Handles transcript and recording analysis, spreadsheet connection and result export.
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile, status

from call_analyzer.core.errors import AnalysisError
from call_analyzer.models.analysis import (
    AnalysisRecord,
    AnalysisResponse,
    AudioUpload,
    InputMode,
    InputModeRequest,
    TextAnalysisRequest,
)
from call_analyzer.models.call import DataContext
from call_analyzer.models.session import (
    AppState,
    DataContextRequest,
    DataContextResponse,
    ExportResponse,
)
from call_analyzer.services.controller import AnalysisController
from call_analyzer.services.orchestrator import AnalysisOutcome

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["analysis"])


def get_controller(request: Request) -> AnalysisController:
    """Dependency to get the controller created in the app lifespan."""
    return request.app.state.controller


def _to_http_error(error: AnalysisError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.message)


def _to_response(outcome: AnalysisOutcome) -> AnalysisResponse:
    return AnalysisResponse(
        result=outcome.result,
        call_metadata=outcome.call_metadata,
        salesperson_name=outcome.salesperson.name if outcome.salesperson else None,
        relevant_history=outcome.relevant_history,
    )


@router.post("/analyze/text", response_model=AnalysisResponse)
async def analyze_text(
    request: TextAnalysisRequest,
    controller: AnalysisController = Depends(get_controller),
):
    """Analyze a pasted sales-call transcript."""
    logger.info(f"Analyzing transcript ({len(request.transcript)} chars)")

    try:
        outcome = await controller.run_analysis(InputMode.TEXT, transcript=request.transcript)
    except AnalysisError as e:
        raise _to_http_error(e)
    except Exception as e:
        logger.error(f"Analysis failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Analysis failed: {str(e)}"
        )

    return _to_response(outcome)


@router.post("/analyze/audio", response_model=AnalysisResponse)
async def analyze_audio(
    file: Optional[UploadFile] = File(default=None),
    controller: AnalysisController = Depends(get_controller),
):
    """
    Transcribe and analyze a call recording.

    Recordings named `<date>_<time>_<call type>_<source>_<destination>.<ext>`
    are matched against the connected spreadsheet's salespersons and customers.
    """
    audio = None
    if file is not None and file.filename:
        audio = AudioUpload(
            filename=file.filename,
            content=await file.read(),
            content_type=file.content_type,
        )
        logger.info(f"Analyzing recording {audio.filename} ({audio.size} bytes)")

    try:
        outcome = await controller.run_analysis(InputMode.AUDIO, audio=audio)
    except AnalysisError as e:
        raise _to_http_error(e)
    except Exception as e:
        logger.error(f"Analysis failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Analysis failed: {str(e)}"
        )

    return _to_response(outcome)


@router.get("/state", response_model=AppState)
async def get_state(controller: AnalysisController = Depends(get_controller)):
    """Current application state (status, error, last result, connected data)."""
    return controller.state


@router.put("/input-mode", response_model=AppState)
async def set_input_mode(
    request: InputModeRequest,
    controller: AnalysisController = Depends(get_controller),
):
    return controller.set_input_mode(request.mode)


@router.post("/data-context", response_model=DataContextResponse)
async def connect_sheet(
    request: DataContextRequest,
    controller: AnalysisController = Depends(get_controller),
):
    """Load products, salespersons and customer history from a Google Sheet."""
    try:
        context = await controller.load_data_context(request.google_sheet_id)
    except AnalysisError as e:
        raise _to_http_error(e)

    return DataContextResponse(
        google_sheet_id=controller.state.google_sheet_id,
        product_context=context.product_context,
        salesperson_count=len(context.salespersons),
        customer_record_count=len(context.customer_history),
    )


@router.get("/data-context", response_model=DataContext)
async def get_data_context(controller: AnalysisController = Depends(get_controller)):
    if controller.state.data_context is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No Google Sheet connected"
        )
    return controller.state.data_context


@router.get("/preferences/sheet-id")
async def get_saved_sheet_id(controller: AnalysisController = Depends(get_controller)):
    """Spreadsheet id remembered from an earlier session."""
    return {"googleSheetId": controller.state.google_sheet_id or None}


@router.post("/results/export", response_model=ExportResponse)
async def export_result(controller: AnalysisController = Depends(get_controller)):
    """Append the latest analysis to the results sheet of the connected spreadsheet."""
    try:
        return await controller.export_result()
    except AnalysisError as e:
        raise _to_http_error(e)


@router.get("/analyses/recent", response_model=List[AnalysisRecord])
async def get_recent_analyses(
    limit: int = 10,
    controller: AnalysisController = Depends(get_controller),
):
    """Most recent stored analyses (empty when MongoDB is not configured)."""
    try:
        return await controller.store.recent_analyses(limit=limit)
    except Exception as e:
        logger.error(f"Failed to fetch recent analyses: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))
