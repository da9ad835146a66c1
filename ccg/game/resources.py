"""
Turn and resource bookkeeping.

TurnSystem tracks the global turn counter, the active player and the phase.
ResourceSystem tracks each player's spendable pool and pending overload. The
available resource cap for a turn is min(turn, MAX_RESOURCES).
"""

import logging
from typing import Dict, Optional

from ccg.game.constants import MAX_RESOURCES, PHASES

logger = logging.getLogger(__name__)


class TurnSystem:
    """Global turn counter, active player and phase."""

    def __init__(self, turn: int = 1):
        self.turn = turn
        self.active_player = None
        self.phase = PHASES[0]

    def set_active_player(self, player) -> None:
        self.active_player = player
        self.phase = PHASES[0]

    def next_phase(self) -> str:
        index = PHASES.index(self.phase)
        self.phase = PHASES[min(index + 1, len(PHASES) - 1)]
        return self.phase

    def advance(self) -> int:
        self.turn += 1
        return self.turn


class ResourceSystem:
    """
    Per-player resource pools and overload.

    Pools are keyed by player id so that cloned players in a throwaway game
    read the same pool slot as long as the ids match.

    Example:
        >>> turns = TurnSystem(turn=3)
        >>> resources = ResourceSystem(turns)
        >>> resources.start_turn(player)
        >>> resources.pool(player)
        3
        >>> resources.pay(player, 2)
        True
        >>> resources.pool(player)
        1
    """

    def __init__(self, turns: TurnSystem):
        self.turns = turns
        self._pool: Dict[str, int] = {}
        self._overload: Dict[str, int] = {}

    def available(self, player=None) -> int:
        return min(self.turns.turn, MAX_RESOURCES)

    def pool(self, player) -> int:
        """Spendable resources; defaults to the available cap."""
        return self._pool.get(player.id, self.available(player))

    def set_pool(self, player, amount: int) -> None:
        self._pool[player.id] = max(0, int(amount))

    def can_pay(self, player, cost: int) -> bool:
        return self.pool(player) >= cost

    def pay(self, player, cost: int) -> bool:
        current = self.pool(player)
        if cost > current:
            logger.debug(f"{player.name} cannot pay {cost} (pool {current})")
            return False
        self._pool[player.id] = current - cost
        return True

    def restore(self, player, amount: int) -> int:
        """Refill up to the available cap. Returns the amount restored."""
        current = self.pool(player)
        new_pool = min(self.available(player), current + amount)
        self._pool[player.id] = new_pool
        return new_pool - current

    def start_turn(self, player) -> int:
        """Refresh the pool for a new turn, applying and clearing pending overload."""
        overload = self.pending_overload(player)
        self._pool[player.id] = max(0, self.available(player) - overload)
        self._overload[player.id] = 0
        return self._pool[player.id]

    def pending_overload(self, player) -> int:
        return self._overload.get(player.id, 0)

    def set_pending_overload(self, player, amount: int) -> None:
        self._overload[player.id] = max(0, int(amount))

    def add_overload_next_turn(self, player, amount: int) -> None:
        self._overload[player.id] = self.pending_overload(player) + max(0, int(amount))

    def sync(self, player, pool: Optional[int] = None, overload: Optional[int] = None) -> None:
        if pool is not None:
            self.set_pool(player, pool)
        if overload is not None:
            self.set_pending_overload(player, overload)
