"""
================================================================================
WR TACTICIAN — PYDANTIC SCHEMAS
================================================================================
Typed contracts for the recognition + analysis round trips, and the matchup
state that both manual edits and recognition results write into.

Wire format is camelCase (myHero, enemyItems, ...), Python attributes are
snake_case. Always dump with by_alias=True when talking to the page or model.

Author: WR Tactician | Version: 1.0.0
================================================================================
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# ENUMS + CONSTANTS
# =============================================================================

class Role(str, Enum):
    TOP = "上路"
    JUNGLE = "打野"
    MID = "中路"
    BOTTOM = "下路"
    SUPPORT = "辅助"


class SyncStatus(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    LIVE = "live"
    STOPPING = "stopping"


ROLES: List[str] = [r.value for r in Role]

COMMON_HEROES: List[str] = [
    "亚索", "永恩", "凯特琳", "拉克丝", "李青", "艾希", "伊泽瑞尔", "金克丝", "迦娜", "娜美",
    "墨菲特", "盖伦", "德莱厄斯", "卡兹克", "雷恩加尔", "阿狸", "卡特琳娜", "薇恩", "瑟提", "提莫",
]

# What recognition answers when it cannot tell. Compared trimmed + casefolded.
UNKNOWN_SENTINELS: FrozenSet[str] = frozenset({"未知", "unknown"})

# Interpolated into the analysis prompt when no enemy items are known
NO_ITEMS_SENTINEL = "尚未出装"


def is_sentinel(value: str) -> bool:
    """True when a recognized hero carries no confident value."""
    if not value or not value.strip():
        return True
    return value.strip().casefold() in UNKNOWN_SENTINELS


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# RECOGNITION — IO
# =============================================================================

class RecognitionResult(_WireModel):
    my_hero: str = Field(alias="myHero")
    enemy_hero: str = Field(alias="enemyHero")
    enemy_items: List[str] = Field(alias="enemyItems")


# =============================================================================
# ANALYSIS — IO
# =============================================================================

class ItemRecommendation(_WireModel):
    item: str
    reason: str


class Combo(_WireModel):
    sequence: str
    description: str


class AnalysisResult(_WireModel):
    matchup_analysis: str = Field(alias="matchupAnalysis")
    recommended_items: List[ItemRecommendation] = Field(alias="recommendedItems")
    combos: List[Combo]
    strategy_tips: List[str] = Field(alias="strategyTips")


# =============================================================================
# MATCHUP STATE
# =============================================================================

@dataclass
class MatchupState:
    """The authoritative current matchup. Lives for the session, never persisted."""
    my_hero: str = ""
    my_role: Role = Role.TOP
    enemy_hero: str = ""
    enemy_items: List[str] = field(default_factory=list)

    def copy(self) -> "MatchupState":
        return copy.deepcopy(self)

    @property
    def is_complete(self) -> bool:
        return bool(self.my_hero) and bool(self.enemy_hero)

    def to_wire(self) -> dict:
        return {
            "myHero": self.my_hero,
            "myRole": self.my_role.value,
            "enemyHero": self.enemy_hero,
            "enemyItems": list(self.enemy_items),
        }


@dataclass(frozen=True)
class MatchupChange:
    """Delivered to store observers after a committed mutation."""
    fields: FrozenSet[str]
    previous: MatchupState
    current: MatchupState
    source: str = "manual"

    @property
    def triggers_analysis(self) -> bool:
        # Hero swaps or a different number of enemy items; role changes
        # and same-length item edits do not re-run analysis.
        return (
            "my_hero" in self.fields
            or "enemy_hero" in self.fields
            or len(self.previous.enemy_items) != len(self.current.enemy_items)
        )
