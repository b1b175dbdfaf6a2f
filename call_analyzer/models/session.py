"""
Application state and Google session models.
"""
from typing import List, Optional
from enum import Enum
from pydantic import Field

from call_analyzer.models.call import (
    CallMetadata,
    CamelModel,
    CustomerHistoryRecord,
    DataContext,
    SalespersonRecord,
)
from call_analyzer.models.analysis import AnalysisResult, InputMode


class AnalysisStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class GoogleUserProfile(CamelModel):
    name: str = ""
    email: str = ""
    image_url: str = ""


class GoogleServicesStatus(CamelModel):
    """Outcome of the Google client initialization step."""
    ready: bool = False
    error: Optional[str] = None


class AppState(CamelModel):
    """Everything the UI renders, owned by a single AnalysisController."""
    status: AnalysisStatus = AnalysisStatus.IDLE
    input_mode: InputMode = InputMode.TEXT
    error: Optional[str] = None
    result: Optional[AnalysisResult] = None
    call_metadata: Optional[CallMetadata] = None
    identified_salesperson: Optional[SalespersonRecord] = None
    relevant_history: Optional[List[CustomerHistoryRecord]] = None
    data_context: Optional[DataContext] = None
    google_sheet_id: str = ""

    @property
    def is_loading(self) -> bool:
        return self.status == AnalysisStatus.RUNNING

    @property
    def is_data_connected(self) -> bool:
        return self.data_context is not None


class DataContextRequest(CamelModel):
    google_sheet_id: str = Field(
        ...,
        pattern=r"^\s*[A-Za-z0-9_-]+\s*$",
        description="Spreadsheet ID from the sheet URL",
    )


class DataContextResponse(CamelModel):
    google_sheet_id: str
    product_context: Optional[str] = None
    salesperson_count: int
    customer_record_count: int


class ExportResponse(CamelModel):
    google_sheet_id: str
    updated_range: Optional[str] = None
    exported: bool = True


class AuthStatusResponse(CamelModel):
    ready: bool
    is_signed_in: bool
    profile: Optional[GoogleUserProfile] = None
