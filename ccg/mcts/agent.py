"""
Turn orchestrator for the MCTS AI.

MCTSAI plays one full turn of a live Game: it repeatedly snapshots the live
state, asks the search for the best action, and applies that action through
the engine's public mutators (play_from_hand, use_hero_power, attack). The
turn ends when the search picks ``end``, the match is over, an action is
rejected, or max_actions_per_turn is reached. A final heuristic attack
phase then spends any attacks the search left unused.

The search tree lives for one turn only. Between actions of the same turn
it is carried over via MCTS.advance_tree() when the live result matches the
simulated one.

Example:
    >>> ai = MCTSAI(game, SearchConfig(iterations=300, seed=7))
    >>> asyncio.run(ai.take_turn(game.opponent, game.player))
    True
"""

import logging
from typing import Callable, Optional

import numpy as np

from ccg.config import SearchConfig
from ccg.game.combat import attack_value
from ccg.game.engine import Game
from ccg.game.entities import Hero, Player
from ccg.mcts.actions import Action
from ccg.mcts.executors import SearchExecutor, create_executor
from ccg.mcts.heuristics import choose_attack_target
from ccg.mcts.search import MCTS
from ccg.mcts.state import state_from_live

logger = logging.getLogger(__name__)


class MCTSAI:
    """
    MCTS-driven player.

    Args:
        game: Live game to act in
        config: SearchConfig (defaults to SearchConfig())
        guidance: Optional policy-value adapter owned by this AI
        executor: Optional executor; default follows config.execution_mode
        progress_callback: Optional callable receiving search completion in [0, 1]
    """

    def __init__(
        self,
        game: Game,
        config: Optional[SearchConfig] = None,
        guidance=None,
        executor: Optional[SearchExecutor] = None,
        progress_callback: Optional[Callable[[float], None]] = None,
    ):
        self.game = game
        self.config = config or SearchConfig()
        self.config.validate()
        self.rng = np.random.default_rng(self.config.seed)
        self.mcts = MCTS(
            self.config,
            guidance=guidance,
            rng=self.rng,
            progress_callback=progress_callback,
        )
        self.executor = executor or create_executor(self.config.execution_mode, self.config)

    async def take_turn(self, player: Player, opponent: Player, resume: bool = False) -> bool:
        """
        Play ``player``'s turn.

        Args:
            player: Side controlled by this AI
            opponent: The other side
            resume: Continue a turn already started (skip the turn-start refresh and draw)

        Returns:
            True once the turn has been played (including turns cut short)
        """
        game = self.game
        self.mcts.reset_tree()
        if not resume:
            game.begin_turn(player)

        for _ in range(self.config.max_actions_per_turn):
            if game.match_over:
                break
            root = state_from_live(game, player, opponent)
            action = await self.executor.run(self.mcts, root)
            if action is None or action.end:
                break

            logger.debug(f"{player.name}: {action.describe()}")
            if not await self._apply(player, action):
                logger.info(f"{player.name}: engine rejected {action.describe()}, ending turn")
                self.mcts.reset_tree()
                break

            if game.match_over:
                self.mcts.reset_tree()
                return True
            self.mcts.advance_tree(state_from_live(game, player, opponent))

        if not game.match_over:
            await self._attack_phase(player, opponent)
        self.mcts.reset_tree()
        return True

    async def _apply(self, player: Player, action: Action) -> bool:
        game = self.game
        if action.attack is not None:
            target_id = None if action.attack.targets_hero else action.attack.target_id
            return await game.attack(player, action.attack.attacker_id, target_id)

        if action.card is not None:
            played = await game.play_from_hand(
                player,
                action.card.id,
                preferred_targets=action.resolved_targets,
            )
            if not played:
                return False
        if action.use_power:
            return await game.use_hero_power(player, preferred_targets=action.resolved_targets)
        return action.card is not None

    async def _attack_phase(self, player: Player, opponent: Player) -> None:
        """Spend remaining attacks with the basic target heuristic."""
        game = self.game
        for attacker in [player.hero] + player.allies():
            while game.can_attack(player, attacker) and not game.match_over:
                legal = game.legal_attack_targets(player, attacker)
                target = choose_attack_target(attacker, attack_value(attacker), legal, opponent.hero)
                if target is None:
                    break
                target_id = None if isinstance(target, Hero) else target.id
                if not await game.attack(player, attacker.id, target_id):
                    break

    def shutdown(self) -> None:
        self.executor.shutdown()
