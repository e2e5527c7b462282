"""
================================================================================
WR TACTICIAN — AGENT TESTS
================================================================================
Recognition + analysis agents against a fake Anthropic client:
  • forced tool call carries the response schema
  • tool_use input / fenced JSON text both parse
  • malformed bodies → MalformedResponse
  • transport errors → TransportFailure

Run: python tests/test_agents.py
================================================================================
"""
import asyncio
import sys
from pathlib import Path
from types import SimpleNamespace

sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest


# =============================================================================
# FAKE CLIENT
# =============================================================================

class FakeMessages:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeClient:
    def __init__(self, *outcomes):
        self.messages = FakeMessages(outcomes)


def tool_response(name, payload):
    return SimpleNamespace(content=[SimpleNamespace(type="tool_use", name=name, input=payload)])


def text_response(text):
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])


ANALYSIS_BODY = {
    "matchupAnalysis": "盖伦前期强势，亚索需要稳住补刀。",
    "recommendedItems": [
        {"item": "水银之靴", "reason": "减少沉默时间"},
        {"item": "守护天使", "reason": "防止被斩杀"},
        {"item": "饮血剑", "reason": "提高续航"},
    ],
    "combos": [
        {"sequence": "E-Q-R", "description": "击飞接大招"},
        {"sequence": "W-E-Q", "description": "风墙挡技能后突进"},
    ],
    "strategyTips": ["等盖伦 Q 交掉再换血", "利用小兵 E 拉扯", "六级前避免硬拼"],
}


# =============================================================================
# TESTS
# =============================================================================

def test_recognition_request_shape():
    """Image block first (data URI header stripped), then the prompt; tool forced."""
    from agents.recognition import RECOGNITION_PROMPT, RECOGNITION_SCHEMA, RecognitionAgent

    client = FakeClient(tool_response("report_screen", {
        "myHero": "亚索", "enemyHero": "盖伦", "enemyItems": ["水银之靴"],
    }))
    agent = RecognitionAgent(client, model="vision-model")

    result = asyncio.run(agent.recognize("data:image/jpeg;base64,QUJD"))
    assert result.my_hero == "亚索"
    assert result.enemy_hero == "盖伦"
    assert result.enemy_items == ["水银之靴"]

    call = client.messages.calls[0]
    assert call["model"] == "vision-model"
    assert call["tool_choice"] == {"type": "tool", "name": "report_screen"}
    assert call["tools"][0]["input_schema"] == RECOGNITION_SCHEMA

    content = call["messages"][0]["content"]
    assert content[0]["type"] == "image"
    assert content[0]["source"] == {"type": "base64", "media_type": "image/jpeg", "data": "QUJD"}
    assert content[1] == {"type": "text", "text": RECOGNITION_PROMPT}
    assert agent.last_latency_ms >= 0
    print("  ✅ Recognition request shape")


def test_analysis_round_trip():
    from agents.analysis import ANALYSIS_SCHEMA, MatchupAnalysisAgent
    from schemas.models import MatchupState

    client = FakeClient(tool_response("report_coaching", ANALYSIS_BODY))
    agent = MatchupAnalysisAgent(client, model="coach-model")

    result = asyncio.run(agent.analyze(MatchupState(my_hero="亚索", enemy_hero="盖伦")))
    assert len(result.recommended_items) == 3
    assert result.combos[0].sequence == "E-Q-R"
    assert len(result.strategy_tips) == 3

    call = client.messages.calls[0]
    assert call["tool_choice"]["name"] == "report_coaching"
    assert call["tools"][0]["input_schema"] == ANALYSIS_SCHEMA
    prompt = call["messages"][0]["content"][0]["text"]
    assert "尚未出装" in prompt
    print("  ✅ Analysis round trip")


def test_text_fallback_parses_fenced_json():
    from agents.recognition import RecognitionAgent

    client = FakeClient(text_response('```json\n{"myHero": "未知", "enemyHero": "提莫", "enemyItems": []}\n```'))
    result = asyncio.run(RecognitionAgent(client).recognize("QUJD"))
    assert result.my_hero == "未知"
    assert result.enemy_hero == "提莫"
    print("  ✅ Fenced JSON fallback")


def test_malformed_responses():
    from agents.recognition import RecognitionAgent
    from schemas.errors import MalformedResponse

    cases = [
        text_response("这不是 JSON"),
        text_response("[1, 2, 3]"),
        tool_response("report_screen", {"myHero": "亚索"}),                        # missing fields
        tool_response("report_screen", {"myHero": "亚索", "enemyHero": "盖伦", "enemyItems": "水银之靴"}),
        SimpleNamespace(content=[]),
    ]
    for response in cases:
        agent = RecognitionAgent(FakeClient(response))
        with pytest.raises(MalformedResponse):
            asyncio.run(agent.recognize("QUJD"))
    print(f"  ✅ {len(cases)} malformed bodies rejected")


def test_transport_failures():
    from agents.analysis import MatchupAnalysisAgent
    from schemas.errors import ClientError, TransportFailure
    from schemas.models import MatchupState

    state = MatchupState(my_hero="亚索", enemy_hero="盖伦")
    for error in [OSError("connection reset"), asyncio.TimeoutError()]:
        agent = MatchupAnalysisAgent(FakeClient(error))
        with pytest.raises(TransportFailure) as info:
            asyncio.run(agent.analyze(state))
        assert isinstance(info.value, ClientError)
        assert info.value.user_message
    print("  ✅ Transport failures mapped")


def test_missing_client():
    from agents.recognition import RecognitionAgent
    from schemas.errors import ConfigError

    with pytest.raises(ConfigError):
        asyncio.run(RecognitionAgent(None).recognize("QUJD"))
    print("  ✅ Missing client is a config error")


# =============================================================================
# MAIN
# =============================================================================

def main():
    print("=" * 60)
    print("  WR TACTICIAN — AGENT TESTS")
    print("=" * 60)

    tests = [
        ("Recognition Request Shape", test_recognition_request_shape),
        ("Analysis Round Trip", test_analysis_round_trip),
        ("Fenced JSON Fallback", test_text_fallback_parses_fenced_json),
        ("Malformed Responses", test_malformed_responses),
        ("Transport Failures", test_transport_failures),
        ("Missing Client", test_missing_client),
    ]

    failed = 0
    for name, test_fn in tests:
        print(f"\n{'─' * 50}\n  TEST: {name}\n{'─' * 50}")
        try:
            test_fn()
        except Exception as e:
            print(f"  ❌ FAILED: {e}")
            failed += 1

    print(f"\n{'=' * 60}")
    print(f"  TOTAL: {len(tests) - failed}/{len(tests)} passed")
    print(f"{'=' * 60}")
    return 0 if failed == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
