"""
================================================================================
RECOGNITION AGENT
================================================================================
Reads a Wild Rift screenshot (in-game, loading screen or scoreboard) and
returns who we are playing, the enemy laner, and the enemy's visible items.

Heroes the model cannot identify come back as "未知"; the matchup store
decides what to do with that, not this agent.

Author: WR Tactician | Version: 1.0.0
================================================================================
"""
import logging

from agents.base import StructuredAgent
from daemon.frame_sampler import strip_data_uri
from schemas.models import RecognitionResult

logger = logging.getLogger("wr_tactician.agents")

RECOGNITION_PROMPT = (
    "这是《英雄联盟手游》的屏幕截图（可能是对局内、加载界面或得分板）。"
    "请识别：1. 我方正在使用的英雄。 2. 敌方对线英雄（或者最明显的敌方英雄）。 "
    "3. 敌方已经出的主要装备名称。请以 JSON 格式返回。"
)

RECOGNITION_SCHEMA = {
    "type": "object",
    "properties": {
        "myHero": {"type": "string"},
        "enemyHero": {"type": "string"},
        "enemyItems": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["myHero", "enemyHero", "enemyItems"],
}


class RecognitionAgent(StructuredAgent):
    """Screenshot → RecognitionResult."""

    name = "recognition"
    tool_name = "report_screen"
    tool_description = "Report the heroes and enemy items visible in the screenshot. Use 未知 for any hero you cannot identify."
    response_schema = RECOGNITION_SCHEMA
    result_model = RecognitionResult

    async def recognize(self, image_b64: str) -> RecognitionResult:
        content = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": "image/jpeg",
                    "data": strip_data_uri(image_b64),
                },
            },
            {"type": "text", "text": RECOGNITION_PROMPT},
        ]
        result = await self._call(content)
        logger.info(
            f"👁️  Recognized: me={result.my_hero} enemy={result.enemy_hero} items={len(result.enemy_items)}"
        )
        return result
