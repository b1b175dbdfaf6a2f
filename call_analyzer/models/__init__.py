"""Data models for Sales Call Analyzer."""
from .call import (
    CallDirection,
    CallMetadata,
    SalespersonRecord,
    CustomerHistoryRecord,
    DataContext,
)
from .analysis import (
    AnalysisResult,
    AnalysisRecord,
    AnalysisResponse,
    InputMode,
    TextAnalysisRequest,
)
from .session import (
    AnalysisStatus,
    AppState,
    GoogleServicesStatus,
    GoogleUserProfile,
)

__all__ = [
    "CallDirection",
    "CallMetadata",
    "SalespersonRecord",
    "CustomerHistoryRecord",
    "DataContext",
    "AnalysisResult",
    "AnalysisRecord",
    "AnalysisResponse",
    "InputMode",
    "TextAnalysisRequest",
    "AnalysisStatus",
    "AppState",
    "GoogleServicesStatus",
    "GoogleUserProfile",
]
