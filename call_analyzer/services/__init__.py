"""Services module for Sales Call Analyzer."""
from .groq_service import CallAnalysisEngine
from .sheets_service import GoogleSheetsService
from .google_auth import GoogleAuthManager
from .orchestrator import AnalysisOrchestrator
from .controller import AnalysisController

__all__ = [
    "CallAnalysisEngine",
    "GoogleSheetsService",
    "GoogleAuthManager",
    "AnalysisOrchestrator",
    "AnalysisController",
]
