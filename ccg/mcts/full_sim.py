"""
Full-fidelity simulator that runs the real engine on cloned entities.

Every step rebuilds a throwaway Game around constructor clones of both
players (Game.from_players), syncs turn, pool and overload, and awaits the
engine's own play_from_hand / use_hero_power / attack. All effect kinds
resolve exactly as they would live, at the cost of speed.

Legal-action enumeration, rollout action choice and scoring are shared with
FastSimulator.
"""

import logging
from typing import List, Optional, Tuple

from ccg.game.combat import attack_value
from ccg.game.engine import Game
from ccg.game.entities import Hero
from ccg.mcts.actions import Action
from ccg.mcts.heuristics import choose_attack_target, evaluate_state
from ccg.mcts.simulation import FastSimulator, GuidanceFn, PlayoutResult, StepResult
from ccg.mcts.state import GameStateView, state_from_live

logger = logging.getLogger(__name__)


class FullSimulator:
    """
    Async simulator backed by the live engine.

    Args:
        fast: FastSimulator supplying action enumeration and rollout policy
    """

    def __init__(self, fast: FastSimulator):
        self.fast = fast
        self.rollout_depth = fast.rollout_depth

    def clone_state(self, state: GameStateView) -> GameStateView:
        """Build a throwaway game around fresh entity instances."""
        player = state.player.clone()
        opponent = state.opponent.clone()
        if not state.power_available and player.hero.active:
            player.hero.power_used = True
        game = Game.from_players(
            player,
            opponent,
            turn=state.turn,
            pool=state.pool,
            overload_player=state.overload_next_player,
            overload_opponent=state.overload_next_opponent,
        )
        return self._view(game, state)

    def _view(self, game: Game, previous: GameStateView) -> GameStateView:
        view = state_from_live(game, game.player, game.opponent)
        view.enraged_player_this_turn = dict(previous.enraged_player_this_turn)
        view.enraged_opponent_this_turn = dict(previous.enraged_opponent_this_turn)
        view.game = game
        return view

    def legal_actions(self, state: GameStateView) -> List[Action]:
        return self.fast.legal_actions(state)

    async def apply_action_async(self, state: GameStateView, action: Action) -> StepResult:
        """
        Apply ``action`` through the engine on a cloned game.

        An engine rejection yields a terminal -inf result.
        """
        s = self.clone_state(state)
        game = s.game
        player, opponent = game.player, game.opponent
        action.target_signature = None
        action.resolved_targets = []

        if action.end:
            value, lethal = await self.resolve_end_async(s)
            return StepResult(terminal=True, value=value, lethal=lethal)

        chosen = []
        game.bus.on('cardPlayed', lambda payload: chosen.extend(payload['targets']))
        game.bus.on('heroPowerUsed', lambda payload: chosen.extend(payload['targets']))

        if action.attack is not None:
            ok = await game.attack(player, action.attack.attacker_id, action.attack.target_id)
        else:
            ok = True
            if action.card is not None:
                ok = await game.play_from_hand(player, action.card.id)
            if ok and action.use_power:
                ok = await game.use_hero_power(player)
        if not ok:
            logger.debug(f"Engine rejected simulated action: {action.describe()}")
            return StepResult(terminal=True, value=float('-inf'))

        if chosen:
            action.resolved_targets = [t.id for t in chosen]
            action.target_signature = ','.join(action.resolved_targets)

        new_state = self._view(game, s)
        if player.hero.health <= 0 or opponent.hero.health <= 0:
            lethal = opponent.hero.health <= 0 and player.hero.health > 0
            return StepResult(terminal=True, value=evaluate_state(new_state), lethal=lethal)
        return StepResult(terminal=False, state=new_state)

    async def resolve_end_async(self, s: GameStateView) -> Tuple[float, bool]:
        """Heuristic attack phase through the engine, then the fast-sim opponent projection."""
        game = s.game
        player, opponent = game.player, game.opponent
        for attacker in [player.hero] + player.allies():
            while game.can_attack(player, attacker) and not game.match_over:
                legal = game.legal_attack_targets(player, attacker)
                target = choose_attack_target(attacker, attack_value(attacker), legal, opponent.hero)
                if target is None:
                    break
                target_id = None if isinstance(target, Hero) else target.id
                if not await game.attack(player, attacker.id, target_id):
                    break

        view = self._view(game, s)
        if opponent.hero.health <= 0:
            return evaluate_state(view), player.hero.health > 0
        if self.fast.project_opponent_response:
            self.fast.project_response(view)
        return evaluate_state(view), False

    async def random_playout_async(
        self,
        state: GameStateView,
        guidance_fn: Optional[GuidanceFn] = None,
    ) -> PlayoutResult:
        current = state
        for _ in range(self.rollout_depth):
            actions = self.legal_actions(current)
            guidance = guidance_fn(current, actions) if guidance_fn is not None else None
            action = self.fast.pick_rollout_action(current, actions, guidance)
            result = await self.apply_action_async(current, action)
            if result.terminal:
                return PlayoutResult(value=result.value, lethal=result.lethal)
            current = result.state

        value, lethal = await self.resolve_end_async(self.clone_state(current))
        return PlayoutResult(value=value, lethal=lethal)
