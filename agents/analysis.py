"""
================================================================================
MATCHUP ANALYSIS AGENT
================================================================================
Hero + role + enemy hero + enemy items → coaching package:
  • matchup analysis (who is strong when)
  • 3 recommended items with reasons
  • 2 combos against this enemy
  • 3 practical tips

Author: WR Tactician | Version: 1.0.0
================================================================================
"""
import logging

from agents.base import StructuredAgent
from schemas.models import NO_ITEMS_SENTINEL, AnalysisResult, MatchupState

logger = logging.getLogger("wr_tactician.agents")

ANALYSIS_PROMPT = """你是一个《英雄联盟手游》(Wild Rift) 的世界级职业教练。
我方英雄: {my_hero}
我方位置: {my_role}
敌方对线英雄: {enemy_hero}
敌方当前已出装备: {enemy_items}

请根据这些信息，提供专业的对战分析、出装建议和连招指导。
必须包含：
1. 对局分析：当前敌我强弱势点。
2. 针对性出装：推荐3件核心或针对性装备，并说明理由。
3. 核心连招：针对敌方英雄的2个高效连招。
4. 对局技巧：3个实战小贴士。"""

ANALYSIS_SCHEMA = {
    "type": "object",
    "properties": {
        "matchupAnalysis": {"type": "string"},
        "recommendedItems": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "item": {"type": "string"},
                    "reason": {"type": "string"},
                },
                "required": ["item", "reason"],
            },
        },
        "combos": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "sequence": {"type": "string"},
                    "description": {"type": "string"},
                },
                "required": ["sequence", "description"],
            },
        },
        "strategyTips": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["matchupAnalysis", "recommendedItems", "combos", "strategyTips"],
}


def build_analysis_prompt(state: MatchupState) -> str:
    """Interpolate the matchup. An empty item list reads as 尚未出装, never as []."""
    items = ", ".join(state.enemy_items) if state.enemy_items else NO_ITEMS_SENTINEL
    return ANALYSIS_PROMPT.format(
        my_hero=state.my_hero,
        my_role=state.my_role.value,
        enemy_hero=state.enemy_hero,
        enemy_items=items,
    )


class MatchupAnalysisAgent(StructuredAgent):
    """MatchupState → AnalysisResult."""

    name = "matchup_analysis"
    tool_name = "report_coaching"
    tool_description = "Return the matchup analysis, item recommendations, combos and tips."
    response_schema = ANALYSIS_SCHEMA
    result_model = AnalysisResult

    async def analyze(self, state: MatchupState) -> AnalysisResult:
        prompt = build_analysis_prompt(state)
        logger.info(f"⚔️  Analyzing {state.my_hero} ({state.my_role.value}) vs {state.enemy_hero}")
        return await self._call([{"type": "text", "text": prompt}])
