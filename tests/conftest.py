from __future__ import annotations

from typing import List, Optional
from urllib.parse import parse_qs

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from call_analyzer.core.config import Settings
from call_analyzer.models.analysis import AnalysisResult, AudioUpload
from call_analyzer.models.call import CustomerHistoryRecord, DataContext, SalespersonRecord
from call_analyzer.routers import analysis, auth
from call_analyzer.services.controller import AnalysisController
from call_analyzer.services.google_auth import DISCOVERY_URL, GoogleAuthManager
from call_analyzer.services.orchestrator import AnalysisOrchestrator
from call_analyzer.services.preference_store import PreferenceStore
from call_analyzer.services.sheets_service import GoogleSheetsService


SAMPLE_RESULT = {
    "salespersonEvaluation": {
        "strengths": ["สุภาพ", "อธิบายสินค้าชัดเจน"],
        "areasForImprovement": ["ควรถามความต้องการมากขึ้น"],
        "communicationStyle": "เป็นกันเอง",
        "productKnowledgeScore": 8,
        "closingSkillScore": 6,
        "overallPerformanceScore": 74,
    },
    "customerEvaluation": {
        "customerProfile": "ลูกค้าเก่า สั่งซื้อประจำ",
        "interestLevel": 7,
        "painPointsIdentified": ["ราคาสูง"],
        "decisionMakingFactors": ["ราคา", "การจัดส่ง"],
        "purchasingBehavior": {
            "summary": "สั่งทุกเดือน",
            "buyingFrequency": "รายเดือน",
            "typicalPurchaseVolume": "2-3 ชิ้น",
            "priceSensitivity": "สูง",
        },
        "customerSentiment": "บวก",
    },
    "situationalEvaluation": {
        "callSentiment": "บวก",
        "currentSalesStage": "เจรจาต่อรอง",
        "keyTopicsDiscussed": ["โปรโมชั่น"],
        "unresolvedQuestions": [],
        "callOutcomeSummary": "ลูกค้าสนใจสั่งเพิ่ม",
        "closingProbability": 65,
        "positiveSignals": ["ถามเรื่องการจัดส่ง"],
        "negativeSignals": [],
    },
    "strategicRecommendations": {
        "nextBestAction": "โทรกลับพร้อมข้อเสนอส่วนลด",
        "talkingPoints": ["ส่วนลดสำหรับลูกค้าประจำ"],
        "suggestedOffer": "ลด 10%",
        "potentialUpsellOpportunities": ["ชุดเสริม"],
        "detailedStrategy": [
            {"recommendation": "เสนอส่วนลด", "reasoning": "ลูกค้ากังวลเรื่องราคา", "successProbability": 70}
        ],
    },
}


class FakeEngine:
    """Records every call and answers with a canned result."""

    def __init__(self, result: Optional[AnalysisResult] = None, error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.calls: List[dict] = []

    async def analyze_text_transcript(self, transcript, product_context, customer_history, salesperson):
        self.calls.append({
            "mode": "text",
            "transcript": transcript,
            "product_context": product_context,
            "customer_history": customer_history,
            "salesperson": salesperson,
        })
        if self.error:
            raise self.error
        return self.result

    async def analyze_audio_file(self, audio: AudioUpload, product_context, customer_history, salesperson):
        self.calls.append({
            "mode": "audio",
            "audio": audio,
            "product_context": product_context,
            "customer_history": customer_history,
            "salesperson": salesperson,
        })
        if self.error:
            raise self.error
        return self.result


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        groq_api_key="test-groq-key",
        google_api_key="test-google-key",
        google_client_id="client-id",
        google_client_secret="client-secret",
        mongo_url=None,
    )


@pytest.fixture
def sample_result() -> AnalysisResult:
    return AnalysisResult.model_validate(SAMPLE_RESULT)


@pytest.fixture
def data_context() -> DataContext:
    return DataContext(
        product_context="- ครีมบำรุงผิว (เครื่องสำอาง)",
        salespersons=[
            SalespersonRecord(name="สมชาย", phone="081-111-1111"),
            SalespersonRecord(name="สมหญิง", phone="083-333-3333"),
        ],
        customer_history=[
            CustomerHistoryRecord(phone="082 222 2222", customer_name="คุณเอ", product="ครีม", price=1200),
            CustomerHistoryRecord(phone="0822222222", customer_name="คุณเอ", product="เซรั่ม", price=900),
            CustomerHistoryRecord(phone="0899999999", customer_name="คุณบี"),
        ],
    )


@pytest.fixture
def fake_engine(sample_result) -> FakeEngine:
    return FakeEngine(result=sample_result)


@pytest.fixture
def controller(settings, fake_engine) -> AnalysisController:
    google_auth = GoogleAuthManager(settings)
    return AnalysisController(
        orchestrator=AnalysisOrchestrator(settings, engine=fake_engine),
        sheets=GoogleSheetsService(google_auth, settings),
        auth=google_auth,
        store=PreferenceStore(None, settings),
    )


@pytest.fixture
def client(controller) -> TestClient:
    app = FastAPI()
    app.include_router(analysis.router)
    app.include_router(auth.router)
    app.state.controller = controller
    return TestClient(app)


DISCOVERY_DOCUMENT = {
    "authorization_endpoint": "https://accounts.example.com/o/oauth2/auth",
    "token_endpoint": "https://oauth2.example.com/token",
    "userinfo_endpoint": "https://openidconnect.example.com/v1/userinfo",
    "revocation_endpoint": "https://oauth2.example.com/revoke",
}


class FakeGoogle:
    """
    httpx transport handler answering the OAuth endpoints.

    Anything else goes to `sheets_handler`, which tests set per case.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.token_grants: List[str] = []
        self.refresh_fails = False
        self.userinfo_fails = False
        self.sheets_handler = lambda request: httpx.Response(404, json={"error": {"message": "no route"}})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = f"{request.url.scheme}://{request.url.host}{request.url.path}"

        if url == DISCOVERY_URL:
            return httpx.Response(200, json=DISCOVERY_DOCUMENT)

        if url == DISCOVERY_DOCUMENT["token_endpoint"]:
            form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
            self.token_grants.append(form["grant_type"])
            if form["grant_type"] == "authorization_code":
                return httpx.Response(200, json={
                    "access_token": "access-1",
                    "refresh_token": "refresh-1",
                    "expires_in": 3600,
                })
            if self.refresh_fails:
                return httpx.Response(400, json={"error": "invalid_grant"})
            return httpx.Response(200, json={"access_token": "access-2", "expires_in": 3600})

        if url == DISCOVERY_DOCUMENT["userinfo_endpoint"]:
            if self.userinfo_fails:
                return httpx.Response(500)
            return httpx.Response(200, json={
                "name": "Somchai Jaidee",
                "email": "somchai@example.com",
                "picture": "https://example.com/somchai.png",
            })

        if url == DISCOVERY_DOCUMENT["revocation_endpoint"]:
            return httpx.Response(200)

        return self.sheets_handler(request)

    def sheets_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.host == "sheets.googleapis.com"]


@pytest.fixture
def fake_google() -> FakeGoogle:
    return FakeGoogle()


@pytest.fixture
def google_auth(settings, fake_google) -> GoogleAuthManager:
    return GoogleAuthManager(settings, transport=fake_google.transport)


async def sign_in(auth: GoogleAuthManager) -> GoogleAuthManager:
    await auth.initialize()
    await auth.sign_in("auth-code")
    return auth
