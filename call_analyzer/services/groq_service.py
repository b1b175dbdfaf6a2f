"""
Groq AI Service - The Call Analysis Brain.
Evaluates sales calls (typed transcripts or recordings) using Groq-hosted models.
"""
import json
import logging
from typing import Any, Dict, List, Optional
from groq import AsyncGroq
from pydantic import ValidationError

from call_analyzer.core.config import Settings, get_settings
from call_analyzer.models.analysis import AnalysisResult, AudioUpload
from call_analyzer.models.call import CustomerHistoryRecord, SalespersonRecord

logger = logging.getLogger(__name__)


class CallAnalysisEngine:
    """AI-powered sales call evaluation using Groq chat models and Whisper."""

    SYSTEM_PROMPT = """You are an expert sales coach analysing a Thai sales phone call. Output STRICT JSON only with these EXACT fields (camelCase keys):

{
  "salespersonEvaluation": {
    "strengths": ["..."],
    "areasForImprovement": ["..."],
    "communicationStyle": "...",
    "productKnowledgeScore": 1-10,
    "closingSkillScore": 1-10,
    "overallPerformanceScore": 0-100
  },
  "customerEvaluation": {
    "customerProfile": "...",
    "interestLevel": 1-10,
    "painPointsIdentified": ["..."],
    "decisionMakingFactors": ["..."],
    "purchasingBehavior": {
      "summary": "...",
      "buyingFrequency": "...",
      "typicalPurchaseVolume": "...",
      "priceSensitivity": "..."
    },
    "customerSentiment": "..."
  },
  "situationalEvaluation": {
    "callSentiment": "...",
    "currentSalesStage": "...",
    "keyTopicsDiscussed": ["..."],
    "unresolvedQuestions": ["..."],
    "callOutcomeSummary": "...",
    "closingProbability": 0-100,
    "positiveSignals": ["..."],
    "negativeSignals": ["..."]
  },
  "strategicRecommendations": {
    "nextBestAction": "...",
    "talkingPoints": ["..."],
    "suggestedOffer": "..." | null,
    "potentialUpsellOpportunities": ["..."],
    "detailedStrategy": [
      {"recommendation": "...", "reasoning": "...", "successProbability": 0-100}
    ]
  }
}

STRICT RULES:
- Write all descriptive text in Thai
- Scores are numbers, never strings
- Only fill "purchasingBehavior" when customer purchase history is provided, otherwise null
- Ground recommendations in the product list and purchase history when they are provided
- Output ONLY valid JSON, no markdown, no extra text"""

    TRANSCRIPTION_RULES = """
ADDITIONAL FIELD:
- Also return "transcribedText": [{"speaker": "พนักงานขาย" | "ลูกค้า", "utterance": "...", "timestamp": "mm:ss" | null}]
  splitting the provided transcript into speaker turns in order. Do not invent dialogue."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[AsyncGroq] = None):
        """Initialize Groq client with API key from settings."""
        settings = settings or get_settings()
        self.client = client or AsyncGroq(api_key=settings.groq_api_key)
        self.model = settings.groq_model
        self.transcription_model = settings.groq_transcription_model
        self.transcription_language = settings.transcription_language
        self.temperature = settings.groq_temperature
        self.max_tokens = settings.groq_max_tokens

    async def analyze_text_transcript(
        self,
        transcript: str,
        product_context: Optional[str],
        customer_history: Optional[List[CustomerHistoryRecord]],
        salesperson: Optional[SalespersonRecord],
    ) -> Optional[AnalysisResult]:
        """
        Analyze a pasted call transcript.

        Returns:
            AnalysisResult, or None when the model answer is empty or malformed.
        """
        logger.info(f"Analyzing transcript with Groq ({self.model}), {len(transcript)} chars")
        prompt = self._build_user_prompt(transcript, product_context, customer_history, salesperson)
        payload = await self._complete_json(self.SYSTEM_PROMPT, prompt)
        return self._to_result(payload)

    async def analyze_audio_file(
        self,
        audio: AudioUpload,
        product_context: Optional[str],
        customer_history: Optional[List[CustomerHistoryRecord]],
        salesperson: Optional[SalespersonRecord],
    ) -> Optional[AnalysisResult]:
        """
        Transcribe a call recording with Whisper, then analyze it.

        The result carries `transcribedText` split into speaker turns.
        """
        transcript = await self.transcribe(audio)
        if not transcript:
            logger.warning(f"Transcription of {audio.filename} returned no text")
            return None

        prompt = self._build_user_prompt(transcript, product_context, customer_history, salesperson)
        payload = await self._complete_json(self.SYSTEM_PROMPT + self.TRANSCRIPTION_RULES, prompt)
        return self._to_result(payload)

    async def transcribe(self, audio: AudioUpload) -> str:
        logger.info(
            f"Transcribing {audio.filename} ({audio.size} bytes) with {self.transcription_model}"
        )
        transcription = await self.client.audio.transcriptions.create(
            file=(audio.filename, audio.content),
            model=self.transcription_model,
            language=self.transcription_language,
            response_format="json",
        )
        text = getattr(transcription, "text", None) or ""
        return text.strip()

    async def _complete_json(self, system_prompt: str, user_prompt: str) -> Optional[str]:
        chat_completion = await self.client.chat.completions.create(
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            response_format={"type": "json_object"},
        )
        if not chat_completion.choices:
            return None
        return chat_completion.choices[0].message.content

    def _to_result(self, raw_response: Optional[str]) -> Optional[AnalysisResult]:
        if not raw_response or not raw_response.strip():
            logger.warning("Groq returned an empty analysis")
            return None

        try:
            analysis_dict = json.loads(raw_response)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse Groq JSON response: {e}")
            return None

        if not analysis_dict:
            return None

        try:
            analysis = AnalysisResult.model_validate(analysis_dict)
        except ValidationError as e:
            logger.error(f"Groq response did not match the analysis schema: {e}")
            return None

        logger.info(
            f"Analysis complete - Overall: {analysis.salesperson_evaluation.overall_performance_score}, "
            f"Closing probability: {analysis.situational_evaluation.closing_probability}, "
            f"Stage: {analysis.situational_evaluation.current_sales_stage}"
        )
        return analysis

    def _build_user_prompt(
        self,
        transcript: str,
        product_context: Optional[str],
        customer_history: Optional[List[CustomerHistoryRecord]],
        salesperson: Optional[SalespersonRecord],
    ) -> str:
        sections = []

        if product_context:
            sections.append(f"PRODUCTS WE SELL:\n{product_context}")

        if salesperson:
            sections.append(f"SALESPERSON ON THIS CALL: {salesperson.name}")

        if customer_history:
            history: List[Dict[str, Any]] = [
                record.model_dump(by_alias=True, exclude_none=True) for record in customer_history
            ]
            sections.append(
                "CUSTOMER PURCHASE HISTORY (JSON):\n"
                + json.dumps(history, ensure_ascii=False, indent=2)
            )
        elif customer_history is not None:
            sections.append("CUSTOMER PURCHASE HISTORY: none on record (new customer)")

        sections.append(f"CALL TRANSCRIPT:\n{transcript}")
        return "Analyze this sales call.\n\n" + "\n\n".join(sections)
