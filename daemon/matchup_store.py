"""
================================================================================
WR TACTICIAN — MATCHUP STATE STORE
================================================================================
Holds the authoritative matchup (heroes, role, enemy items). Manual edits from
the page and recognition results from the live loop / uploads all write here.

Every mutation that actually changes something notifies observers with a
MatchupChange. The live controller subscribes to decide when to re-analyze.

Author: WR Tactician | Version: 1.0.0
================================================================================
"""
from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional, Set

from schemas.models import (
    MatchupChange,
    MatchupState,
    RecognitionResult,
    Role,
    is_sentinel,
)

logger = logging.getLogger("wr_tactician.store")

Observer = Callable[[MatchupChange], None]


class MatchupStore:
    """
    Usage:
        store = MatchupStore()
        unsubscribe = store.subscribe(lambda change: print(change.fields))
        store.set_my_hero("亚索")
    """

    def __init__(self, initial: Optional[MatchupState] = None):
        self._state = initial.copy() if initial else MatchupState()
        self._observers: List[Observer] = []

    # =========================================================================
    # READ
    # =========================================================================

    def snapshot(self) -> MatchupState:
        return self._state.copy()

    @property
    def my_hero(self) -> str:
        return self._state.my_hero

    @property
    def enemy_hero(self) -> str:
        return self._state.enemy_hero

    @property
    def enemy_items(self) -> List[str]:
        return list(self._state.enemy_items)

    # =========================================================================
    # OBSERVERS
    # =========================================================================

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer. Returns a callable that unsubscribes it."""
        self._observers.append(observer)

        def unsubscribe():
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _commit(self, new_state: MatchupState, source: str) -> Optional[MatchupChange]:
        previous = self._state
        changed: Set[str] = {
            name for name in ("my_hero", "my_role", "enemy_hero", "enemy_items")
            if getattr(previous, name) != getattr(new_state, name)
        }
        if not changed:
            return None

        self._state = new_state
        change = MatchupChange(
            fields=frozenset(changed),
            previous=previous.copy(),
            current=new_state.copy(),
            source=source,
        )
        logger.debug(f"Matchup changed ({source}): {sorted(changed)}")

        for observer in list(self._observers):
            try:
                observer(change)
            except Exception as e:
                logger.error(f"Matchup observer failed: {e}", exc_info=True)
        return change

    def _mutate(self, source: str, **updates) -> Optional[MatchupChange]:
        new_state = self._state.copy()
        for name, value in updates.items():
            setattr(new_state, name, value)
        return self._commit(new_state, source)

    # =========================================================================
    # MANUAL EDITS
    # =========================================================================

    def set_my_hero(self, hero: str, source: str = "manual") -> Optional[MatchupChange]:
        return self._mutate(source, my_hero=hero)

    def set_enemy_hero(self, hero: str, source: str = "manual") -> Optional[MatchupChange]:
        return self._mutate(source, enemy_hero=hero)

    def set_role(self, role, source: str = "manual") -> Optional[MatchupChange]:
        return self._mutate(source, my_role=Role(role))

    def add_enemy_item(self, text: str) -> Optional[MatchupChange]:
        """Append a trimmed item name. Blank input is ignored."""
        item = (text or "").strip()
        if not item:
            return None
        return self._mutate("manual", enemy_items=self._state.enemy_items + [item])

    def remove_enemy_item(self, index: int) -> Optional[MatchupChange]:
        """Remove the item at ``index``. Raises IndexError when out of range."""
        items = list(self._state.enemy_items)
        if index < 0 or index >= len(items):
            raise IndexError(f"No enemy item at index {index} (have {len(items)})")
        del items[index]
        return self._mutate("manual", enemy_items=items)

    def set_enemy_items(self, items: Iterable[str], source: str = "manual") -> Optional[MatchupChange]:
        return self._mutate(source, enemy_items=list(items))

    def reset(self) -> Optional[MatchupChange]:
        return self._commit(MatchupState(), "reset")

    # =========================================================================
    # RECOGNITION MERGE
    # =========================================================================

    def merge_recognition(
        self,
        result: RecognitionResult,
        filter_sentinels: bool = True,
        replace_empty_items: bool = False,
        source: str = "recognition",
    ) -> Optional[MatchupChange]:
        """
        Fold a recognition result into the matchup as one committed change.

        Hero fields:
            filter_sentinels=True  -> "未知"/"unknown"/blank leave the field alone
            filter_sentinels=False -> any non-empty value overwrites
        Items: overwrite when non-empty, or always with replace_empty_items.
        """
        updates = {}

        for name in ("my_hero", "enemy_hero"):
            value = getattr(result, name)
            if filter_sentinels:
                if not is_sentinel(value):
                    updates[name] = value.strip()
            elif value:
                updates[name] = value

        if result.enemy_items or replace_empty_items:
            updates["enemy_items"] = list(result.enemy_items)

        if not updates:
            return None
        return self._mutate(source, **updates)
