from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from call_analyzer.models.analysis import AudioUpload
from call_analyzer.models.call import CustomerHistoryRecord, SalespersonRecord
from call_analyzer.services.groq_service import CallAnalysisEngine

from conftest import SAMPLE_RESULT


def _completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def _client(content=None, transcript="สวัสดีค่ะ สนใจสินค้าไหมคะ"):
    return SimpleNamespace(
        chat=SimpleNamespace(completions=SimpleNamespace(create=AsyncMock(return_value=_completion(content)))),
        audio=SimpleNamespace(
            transcriptions=SimpleNamespace(create=AsyncMock(return_value=SimpleNamespace(text=transcript)))
        ),
    )


def _user_prompt(client) -> str:
    messages = client.chat.completions.create.call_args.kwargs["messages"]
    return messages[1]["content"]


@pytest.mark.asyncio
async def test_text_analysis_parses_camel_case_json(settings) -> None:
    client = _client(json.dumps(SAMPLE_RESULT, ensure_ascii=False))
    engine = CallAnalysisEngine(settings, client=client)

    result = await engine.analyze_text_transcript("ลูกค้า: สวัสดีครับ", "- ครีม", None, None)

    assert result is not None
    assert result.salesperson_evaluation.overall_performance_score == 74
    assert result.strategic_recommendations.detailed_strategy[0].success_probability == 70
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == settings.groq_model
    assert kwargs["response_format"] == {"type": "json_object"}
    client.audio.transcriptions.create.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("content", [None, "", "   ", "not json", "{}", '{"salespersonEvaluation": {}}'])
async def test_unusable_model_output_is_none(settings, content) -> None:
    engine = CallAnalysisEngine(settings, client=_client(content))

    assert await engine.analyze_text_transcript("hello", None, None, None) is None


@pytest.mark.asyncio
async def test_no_choices_is_none(settings) -> None:
    client = _client()
    client.chat.completions.create.return_value = SimpleNamespace(choices=[])
    engine = CallAnalysisEngine(settings, client=client)

    assert await engine.analyze_text_transcript("hello", None, None, None) is None


@pytest.mark.asyncio
async def test_out_of_range_scores_are_capped(settings) -> None:
    payload = json.loads(json.dumps(SAMPLE_RESULT))
    payload["salespersonEvaluation"]["productKnowledgeScore"] = 14
    payload["salespersonEvaluation"]["closingSkillScore"] = 0
    payload["salespersonEvaluation"]["overallPerformanceScore"] = 120
    payload["customerEvaluation"]["interestLevel"] = "11"
    payload["situationalEvaluation"]["closingProbability"] = -5
    engine = CallAnalysisEngine(settings, client=_client(json.dumps(payload)))

    result = await engine.analyze_text_transcript("hello", None, None, None)

    assert result.salesperson_evaluation.product_knowledge_score == 10
    assert result.salesperson_evaluation.closing_skill_score == 1
    assert result.salesperson_evaluation.overall_performance_score == 100
    assert result.customer_evaluation.interest_level == 10
    assert result.situational_evaluation.closing_probability == 0


@pytest.mark.asyncio
async def test_audio_is_transcribed_then_analyzed(settings) -> None:
    payload = dict(SAMPLE_RESULT, transcribedText=[{"speaker": "ลูกค้า", "utterance": "สวัสดีค่ะ"}])
    client = _client(json.dumps(payload, ensure_ascii=False))
    engine = CallAnalysisEngine(settings, client=client)
    audio = AudioUpload(filename="call.mp3", content=b"abc", content_type="audio/mpeg")

    result = await engine.analyze_audio_file(audio, None, None, None)

    assert result.transcribed_text[0].speaker == "ลูกค้า"
    transcription_kwargs = client.audio.transcriptions.create.call_args.kwargs
    assert transcription_kwargs["file"] == ("call.mp3", b"abc")
    assert transcription_kwargs["language"] == "th"
    assert transcription_kwargs["model"] == settings.groq_transcription_model
    system_prompt = client.chat.completions.create.call_args.kwargs["messages"][0]["content"]
    assert "transcribedText" in system_prompt
    assert "สวัสดีค่ะ สนใจสินค้าไหมคะ" in _user_prompt(client)


@pytest.mark.asyncio
async def test_silent_recording_skips_analysis(settings) -> None:
    client = _client(json.dumps(SAMPLE_RESULT), transcript="  ")
    engine = CallAnalysisEngine(settings, client=client)
    audio = AudioUpload(filename="silence.mp3", content=b"abc")

    assert await engine.analyze_audio_file(audio, None, None, None) is None
    client.chat.completions.create.assert_not_awaited()


@pytest.mark.asyncio
async def test_prompt_carries_products_salesperson_and_history(settings) -> None:
    client = _client(json.dumps(SAMPLE_RESULT))
    engine = CallAnalysisEngine(settings, client=client)
    history = [CustomerHistoryRecord(phone="0822222222", customer_name="คุณเอ", price="1,200")]

    await engine.analyze_text_transcript(
        "transcript", "- ครีมบำรุงผิว", history, SalespersonRecord(name="สมชาย", phone="0811111111")
    )

    prompt = _user_prompt(client)
    assert "- ครีมบำรุงผิว" in prompt
    assert "สมชาย" in prompt
    assert '"customerName": "คุณเอ"' in prompt
    assert '"price": 1200.0' in prompt


@pytest.mark.asyncio
async def test_prompt_marks_new_customer_when_history_is_empty(settings) -> None:
    client = _client(json.dumps(SAMPLE_RESULT))
    engine = CallAnalysisEngine(settings, client=client)

    await engine.analyze_text_transcript("transcript", None, [], None)

    prompt = _user_prompt(client)
    assert "none on record (new customer)" in prompt
    assert "PRODUCTS WE SELL" not in prompt


@pytest.mark.asyncio
async def test_remote_errors_propagate(settings) -> None:
    client = _client()
    client.chat.completions.create.side_effect = RuntimeError("quota exceeded")
    engine = CallAnalysisEngine(settings, client=client)

    with pytest.raises(RuntimeError, match="quota exceeded"):
        await engine.analyze_text_transcript("hello", None, None, None)
