"""
Analysis Controller - owns the application state shown to the user.
"""
import logging
from typing import Optional

from call_analyzer.core.errors import (
    AnalysisError,
    AnalysisInProgress,
    ExportUnavailable,
    NotSignedIn,
)
from call_analyzer.models.analysis import AnalysisRecord, AudioUpload, InputMode
from call_analyzer.models.call import DataContext
from call_analyzer.models.session import (
    AnalysisStatus,
    AppState,
    ExportResponse,
    GoogleServicesStatus,
)
from call_analyzer.services.google_auth import GoogleAuthManager
from call_analyzer.services.orchestrator import AnalysisOrchestrator, AnalysisOutcome
from call_analyzer.services.preference_store import PreferenceStore
from call_analyzer.services.sheets_service import GoogleSheetsService, build_result_row

logger = logging.getLogger(__name__)


class AnalysisController:
    """
    Single owner of AppState.

    Collaborators are injected so the app lifespan (or a test) decides how
    they are built.
    """

    def __init__(
        self,
        orchestrator: AnalysisOrchestrator,
        sheets: GoogleSheetsService,
        auth: GoogleAuthManager,
        store: PreferenceStore,
    ):
        self.orchestrator = orchestrator
        self.sheets = sheets
        self.auth = auth
        self.store = store
        self.state = AppState()

    async def restore_preferences(self) -> None:
        """Bring back the spreadsheet id used in an earlier session."""
        saved_sheet_id = await self.store.get_sheet_id()
        if saved_sheet_id:
            self.state.google_sheet_id = saved_sheet_id
            logger.info(f"Restored saved spreadsheet id {saved_sheet_id}")

    def apply_google_status(self, status: GoogleServicesStatus) -> None:
        if status.error:
            self.state.error = status.error

    def set_input_mode(self, mode: InputMode) -> AppState:
        self.state.input_mode = mode
        if mode == InputMode.TEXT:
            self.state.call_metadata = None
            self.state.identified_salesperson = None
        return self.state

    async def run_analysis(
        self,
        mode: InputMode,
        transcript: Optional[str] = None,
        audio: Optional[AudioUpload] = None,
    ) -> AnalysisOutcome:
        """
        Run one analysis and record its outcome in the state.

        Raises:
            AnalysisInProgress if an analysis is already running; otherwise
            the orchestrator's AnalysisError after it has been recorded
        """
        if self.state.status == AnalysisStatus.RUNNING:
            raise AnalysisInProgress()

        state = self.state
        state.status = AnalysisStatus.RUNNING
        state.input_mode = mode
        state.error = None
        state.result = None

        try:
            outcome = await self.orchestrator.run(
                mode,
                transcript=transcript,
                audio=audio,
                data_context=state.data_context,
            )
        except AnalysisError as e:
            logger.warning(f"Analysis failed: {e.message}")
            self._record_failure(e.message)
            raise
        except Exception:
            logger.error("Unexpected analysis failure", exc_info=True)
            self._record_failure("An unknown error occurred during analysis.")
            raise
        finally:
            # Cancellation is a BaseException and skips the handlers above
            if state.status == AnalysisStatus.RUNNING:
                logger.warning("Analysis cancelled before it finished")
                self._record_failure("The analysis was cancelled before it finished.")

        state.status = AnalysisStatus.SUCCEEDED
        state.result = outcome.result
        state.call_metadata = outcome.call_metadata
        state.identified_salesperson = outcome.salesperson
        state.relevant_history = outcome.relevant_history

        await self.store.save_analysis(AnalysisRecord(
            input_mode=mode,
            original_filename=audio.filename if audio else None,
            call_metadata=outcome.call_metadata,
            salesperson_name=outcome.salesperson.name if outcome.salesperson else None,
            google_sheet_id=state.google_sheet_id or None,
            result=outcome.result,
        ))
        return outcome

    def _record_failure(self, message: str) -> None:
        state = self.state
        state.status = AnalysisStatus.FAILED
        state.error = message
        state.call_metadata = None
        state.identified_salesperson = None
        state.relevant_history = None

    async def load_data_context(self, sheet_id: str) -> DataContext:
        """Connect a spreadsheet and use its data for the following analyses."""
        try:
            context = await self.sheets.load_data_context(sheet_id)
        except AnalysisError as e:
            self.state.error = e.message
            raise

        self.state.data_context = context
        self.state.google_sheet_id = sheet_id.strip()
        self.state.error = None
        await self.store.remember_sheet_id(self.state.google_sheet_id)
        return context

    async def export_result(self) -> ExportResponse:
        """Append the latest successful analysis to the connected spreadsheet."""
        state = self.state
        if not self.auth.is_signed_in:
            raise NotSignedIn("Please sign in with Google to save results to the sheet.")
        if state.result is None:
            raise ExportUnavailable("There is no analysis result to export.")
        if not state.google_sheet_id:
            raise ExportUnavailable("Please connect a Google Sheet first.")

        row = build_result_row(
            state.result,
            state.call_metadata,
            state.identified_salesperson.name if state.identified_salesperson else None,
        )
        updated_range = await self.sheets.append_analysis_row(state.google_sheet_id, row)
        return ExportResponse(google_sheet_id=state.google_sheet_id, updated_range=updated_range)
