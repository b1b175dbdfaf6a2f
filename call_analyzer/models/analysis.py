"""
Call analysis result and request models.
"""
from typing import List, Optional
from datetime import datetime
from enum import Enum
from pydantic import BaseModel, Field, field_validator

from call_analyzer.models.call import (
    CallMetadata,
    CamelModel,
    CustomerHistoryRecord,
)


def _cap(value, low: float, high: float):
    """Pull a model-reported score into its range instead of rejecting it."""
    if value is None:
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        return value
    return min(max(number, low), high)


class InputMode(str, Enum):
    TEXT = "text"
    AUDIO = "audio"


class TranscribedUtterance(CamelModel):
    speaker: str
    utterance: str
    timestamp: Optional[str] = None


class PurchasingBehavior(CamelModel):
    summary: str = ""
    buying_frequency: str = ""
    typical_purchase_volume: str = ""
    price_sensitivity: str = ""


class SalespersonEvaluation(CamelModel):
    strengths: List[str] = Field(default_factory=list)
    areas_for_improvement: List[str] = Field(default_factory=list)
    communication_style: str = ""
    product_knowledge_score: float = Field(..., description="1-10")
    closing_skill_score: float = Field(..., description="1-10")
    overall_performance_score: float = Field(..., description="0-100 (%)")

    @field_validator("product_knowledge_score", "closing_skill_score", mode="before")
    @classmethod
    def _cap_ten(cls, value):
        return _cap(value, 1, 10)

    @field_validator("overall_performance_score", mode="before")
    @classmethod
    def _cap_percent(cls, value):
        return _cap(value, 0, 100)


class CustomerEvaluation(CamelModel):
    customer_profile: str = ""
    interest_level: float = Field(..., description="1-10")
    pain_points_identified: List[str] = Field(default_factory=list)
    decision_making_factors: List[str] = Field(default_factory=list)
    purchasing_behavior: Optional[PurchasingBehavior] = None
    customer_sentiment: str = ""

    @field_validator("interest_level", mode="before")
    @classmethod
    def _cap_ten(cls, value):
        return _cap(value, 1, 10)


class SituationalEvaluation(CamelModel):
    call_sentiment: str = ""
    current_sales_stage: str = ""
    key_topics_discussed: List[str] = Field(default_factory=list)
    unresolved_questions: List[str] = Field(default_factory=list)
    call_outcome_summary: str = ""
    closing_probability: float = Field(..., description="0-100 (%)")
    positive_signals: List[str] = Field(default_factory=list)
    negative_signals: List[str] = Field(default_factory=list)

    @field_validator("closing_probability", mode="before")
    @classmethod
    def _cap_percent(cls, value):
        return _cap(value, 0, 100)


class StrategicRecommendationItem(CamelModel):
    recommendation: str
    reasoning: str = ""
    success_probability: float = Field(..., description="0-100 (%)")

    @field_validator("success_probability", mode="before")
    @classmethod
    def _cap_percent(cls, value):
        return _cap(value, 0, 100)


class StrategicRecommendations(CamelModel):
    next_best_action: str
    talking_points: List[str] = Field(default_factory=list)
    suggested_offer: Optional[str] = None
    potential_upsell_opportunities: List[str] = Field(default_factory=list)
    detailed_strategy: List[StrategicRecommendationItem] = Field(default_factory=list)


class AnalysisResult(CamelModel):
    """Structured evaluation returned by the analysis engine."""
    salesperson_evaluation: SalespersonEvaluation
    customer_evaluation: CustomerEvaluation
    situational_evaluation: SituationalEvaluation
    strategic_recommendations: StrategicRecommendations
    transcribed_text: Optional[List[TranscribedUtterance]] = None


class TextAnalysisRequest(CamelModel):
    """Request body for transcript analysis."""
    transcript: str = Field(default="", description="Pasted call transcript")


class InputModeRequest(CamelModel):
    mode: InputMode


class AnalysisResponse(CamelModel):
    """Analysis outcome plus the call details used to enrich it."""
    result: AnalysisResult
    call_metadata: Optional[CallMetadata] = None
    salesperson_name: Optional[str] = None
    relevant_history: Optional[List[CustomerHistoryRecord]] = None


class AnalysisRecord(CamelModel):
    """MongoDB document model for analysis history."""
    input_mode: InputMode
    original_filename: Optional[str] = None
    call_metadata: Optional[CallMetadata] = None
    salesperson_name: Optional[str] = None
    google_sheet_id: Optional[str] = None
    result: AnalysisResult
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class AudioUpload(BaseModel):
    """Uploaded recording handed to the audio analysis call."""
    filename: str
    content: bytes
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)
