"""
Analysis Orchestrator - enriches a submission with spreadsheet data and runs the analysis.
"""
import logging
from typing import List, Optional, Protocol

from pydantic import BaseModel

from call_analyzer.core.config import Settings, get_settings
from call_analyzer.core.errors import (
    AnalysisError,
    ConfigurationMissing,
    EmptyResult,
    InputValidationError,
    RemoteCallFailure,
)
from call_analyzer.models.analysis import AnalysisResult, AudioUpload, InputMode
from call_analyzer.models.call import (
    CallMetadata,
    CustomerHistoryRecord,
    DataContext,
    SalespersonRecord,
)
from call_analyzer.services.filename_parser import parse_call_filename
from call_analyzer.services.groq_service import CallAnalysisEngine
from call_analyzer.services.phone_matcher import (
    filter_customer_history,
    find_salesperson,
    side_for,
)

logger = logging.getLogger(__name__)


class AnalysisEngine(Protocol):
    """The remote analysis calls, one per input mode."""

    async def analyze_text_transcript(
        self,
        transcript: str,
        product_context: Optional[str],
        customer_history: Optional[List[CustomerHistoryRecord]],
        salesperson: Optional[SalespersonRecord],
    ) -> Optional[AnalysisResult]:
        ...

    async def analyze_audio_file(
        self,
        audio: AudioUpload,
        product_context: Optional[str],
        customer_history: Optional[List[CustomerHistoryRecord]],
        salesperson: Optional[SalespersonRecord],
    ) -> Optional[AnalysisResult]:
        ...


class CallContext(BaseModel):
    """What the orchestrator learned about the call before analysing it."""
    call_metadata: Optional[CallMetadata] = None
    salesperson: Optional[SalespersonRecord] = None
    relevant_history: Optional[List[CustomerHistoryRecord]] = None


class AnalysisOutcome(CallContext):
    result: AnalysisResult


def build_call_context(
    call_metadata: Optional[CallMetadata],
    data_context: Optional[DataContext],
) -> CallContext:
    """
    Match the call's phones against the reference data.

    Nothing is matched without both parsed metadata and a data context.
    """
    if call_metadata is None or data_context is None:
        return CallContext(call_metadata=call_metadata)

    salesperson_phone, customer_phone = side_for(call_metadata.direction, call_metadata)

    salesperson = None
    if data_context.salespersons and salesperson_phone:
        salesperson = find_salesperson(data_context.salespersons, salesperson_phone)

    relevant_history = None
    if customer_phone:
        relevant_history = filter_customer_history(data_context.customer_history, customer_phone)

    return CallContext(
        call_metadata=call_metadata,
        salesperson=salesperson,
        relevant_history=relevant_history,
    )


class AnalysisOrchestrator:
    """Runs one analysis: configuration check, enrichment, validation, remote call."""

    def __init__(self, settings: Optional[Settings] = None, engine: Optional[AnalysisEngine] = None):
        self.settings = settings or get_settings()
        self._engine = engine

    def _get_engine(self) -> AnalysisEngine:
        if self._engine is None:
            self._engine = CallAnalysisEngine(self.settings)
        return self._engine

    async def run(
        self,
        mode: InputMode,
        transcript: Optional[str] = None,
        audio: Optional[AudioUpload] = None,
        data_context: Optional[DataContext] = None,
    ) -> AnalysisOutcome:
        """
        Analyze a transcript (text mode) or a recording (audio mode).

        Raises:
            ConfigurationMissing, InputValidationError, RemoteCallFailure, EmptyResult
        """
        if not self.settings.groq_api_key:
            raise ConfigurationMissing(
                "API Key is not configured. Please ensure GROQ_API_KEY is set in your environment. "
                "This application cannot function without it."
            )

        call_metadata = None
        if mode == InputMode.AUDIO and audio is not None:
            call_metadata = parse_call_filename(audio.filename)

        context = build_call_context(call_metadata, data_context)
        if context.salesperson:
            logger.info(f"Identified salesperson: {context.salesperson.name}")
        if context.relevant_history is not None:
            logger.info(f"Found {len(context.relevant_history)} customer history records for this call")

        self._validate(mode, transcript, audio)

        product_context = data_context.product_context if data_context else None
        engine = self._get_engine()

        try:
            if mode == InputMode.TEXT:
                result = await engine.analyze_text_transcript(
                    transcript, product_context, context.relevant_history, context.salesperson
                )
            else:
                result = await engine.analyze_audio_file(
                    audio, product_context, context.relevant_history, context.salesperson
                )
        except AnalysisError:
            raise
        except Exception as e:
            logger.error(f"Analysis error: {e}", exc_info=True)
            raise RemoteCallFailure.from_exception(e) from e

        if not result:
            raise EmptyResult()

        return AnalysisOutcome(
            result=result,
            call_metadata=context.call_metadata,
            salesperson=context.salesperson,
            relevant_history=context.relevant_history,
        )

    def _validate(self, mode: InputMode, transcript: Optional[str], audio: Optional[AudioUpload]) -> None:
        if mode == InputMode.TEXT:
            if not transcript or not transcript.strip():
                raise InputValidationError("Please paste a transcript.")
            return

        if audio is None:
            raise InputValidationError("Please upload an audio file.")
        if audio.size == 0:
            raise InputValidationError("The uploaded audio file is empty.")
        if audio.size > self.settings.max_audio_bytes:
            limit_mb = self.settings.max_audio_bytes / (1024 * 1024)
            raise InputValidationError(f"The audio file is too large. The maximum size is {limit_mb:.0f} MB.")
