"""
Feature encoding for the policy-value network.

The network scores (state, action) pairs. Its input is the concatenation of
a state vector and an action vector, all features normalized to [0, 1].

State Encoding Dimensions (20 total):
=====================================

 0. Turn / 20
 1-9. My side:
    hero health / 40, hero armor / 20, pool / 10, available / 10,
    hand size / 10, allies / 7, board attack / 50, board health / 100,
    max ally attack / 20
 10-18. Opponent side:
    hero health / 40, hero armor / 20, pool / 10, available / 10,
    hand size / 10, allies / 7, board attack / 50, board health / 100,
    taunt count / 5
 19. Hero power available (binary)

The opponent's pool is not tracked during the player's turn; it is encoded
as the resources available on this turn.

Action Encoding Dimensions (15 total):
======================================

 0-2. is play / is hero power / is end (binary)
 3-6. card cost / 10, attack / 20, health / 20, type code / 4
 7-14. card keywords (binary): Rush, Taunt, Stealth, Divine Shield,
       Windfury, Battlecry, Reflect, Lifesteal

Attack actions reuse slots 3-9 when the state is known:

 3-6. attacker attack / 20, attacker health / 20,
      target attack / 20, target health / 20
 7-9. target is the enemy hero, target has Taunt, target has Divine Shield

Without a state they encode as all zeros.
"""

from typing import List, Optional

import torch

from ccg.game.constants import (
    ALLY,
    BATTLECRY,
    DIVINE_SHIELD,
    EQUIPMENT,
    LIFESTEAL,
    MAX_RESOURCES,
    QUEST,
    REFLECT,
    RUSH,
    SPELL,
    STEALTH,
    TAUNT,
    WINDFURY,
)
from ccg.game.entities import Hero
from ccg.mcts.actions import Action
from ccg.mcts.state import GameStateView

STATE_DIM = 20
ACTION_DIM = 15
INPUT_DIM = STATE_DIM + ACTION_DIM

TYPE_CODES = {ALLY: 1, SPELL: 2, EQUIPMENT: 3, QUEST: 4}
ACTION_KEYWORDS = (RUSH, TAUNT, STEALTH, DIVINE_SHIELD, WINDFURY, BATTLECRY, REFLECT, LIFESTEAL)


def _clamp01(x: float) -> float:
    return 0.0 if x < 0 else 1.0 if x > 1 else float(x)


def _attack_of(character) -> int:
    if isinstance(character, Hero):
        return character.total_attack()
    return character.attack


class StateEncoder:
    """
    Encodes a GameStateView into a tensor from the side-to-move's perspective.

    Output: torch.Tensor of shape (20,)
    """

    def __init__(self):
        self.state_dim = STATE_DIM

    def encode(self, state: GameStateView) -> torch.Tensor:
        """
        Encode ``state``.

        Args:
            state: Search state (player is the side to move)

        Returns:
            torch.Tensor of shape (20,) with normalized features
        """
        available = min(max(state.turn, 0), MAX_RESOURCES)
        mine = self._summarize_side(state.player)
        theirs = self._summarize_side(state.opponent)

        features = [
            _clamp01(state.turn / 20),
            _clamp01(mine['health'] / 40),
            _clamp01(mine['armor'] / 20),
            _clamp01(state.pool / 10),
            _clamp01(available / 10),
            _clamp01(mine['hand'] / 10),
            _clamp01(mine['allies'] / 7),
            _clamp01(mine['attack'] / 50),
            _clamp01(mine['board_health'] / 100),
            _clamp01(mine['max_attack'] / 20),
            _clamp01(theirs['health'] / 40),
            _clamp01(theirs['armor'] / 20),
            _clamp01(available / 10),
            _clamp01(available / 10),
            _clamp01(theirs['hand'] / 10),
            _clamp01(theirs['allies'] / 7),
            _clamp01(theirs['attack'] / 50),
            _clamp01(theirs['board_health'] / 100),
            _clamp01(theirs['taunts'] / 5),
            1.0 if state.power_available else 0.0,
        ]
        return torch.tensor(features, dtype=torch.float32)

    def _summarize_side(self, player) -> dict:
        allies = player.allies()
        return {
            'health': player.hero.health,
            'armor': player.hero.armor,
            'hand': len(player.hand),
            'allies': len(allies),
            'attack': sum(c.attack for c in allies),
            'board_health': sum(c.health or 0 for c in allies),
            'max_attack': max((c.attack for c in allies), default=0),
            'taunts': sum(1 for c in allies if c.has_keyword(TAUNT)),
        }


class ActionEncoder:
    """Encodes an Action into a tensor of shape (15,)."""

    def __init__(self):
        self.action_dim = ACTION_DIM

    def encode(self, action: Action, state: Optional[GameStateView] = None) -> torch.Tensor:
        if action.is_attack:
            return self._encode_attack(action, state)
        card = action.card
        features = [
            1.0 if card is not None else 0.0,
            1.0 if action.use_power else 0.0,
            1.0 if action.end else 0.0,
        ]
        if card is not None:
            features += [
                _clamp01(card.cost / 10),
                _clamp01(card.attack / 20),
                _clamp01((card.health or 0) / 20),
                _clamp01(TYPE_CODES.get(card.type, 0) / 4),
            ]
            features += [1.0 if card.has_keyword(kw) else 0.0 for kw in ACTION_KEYWORDS]
        else:
            features += [0.0] * (ACTION_DIM - 3)
        return torch.tensor(features, dtype=torch.float32)

    def _encode_attack(self, action: Action, state: Optional[GameStateView]) -> torch.Tensor:
        features = [0.0] * ACTION_DIM
        if state is None:
            return torch.tensor(features, dtype=torch.float32)
        attacker = state.player.find_character(action.attack.attacker_id)
        target = state.opponent.find_character(action.attack.target_id)
        if attacker is not None:
            features[3] = _clamp01(_attack_of(attacker) / 20)
            features[4] = _clamp01((attacker.health or 0) / 20)
        if target is not None:
            features[5] = _clamp01(_attack_of(target) / 20)
            features[6] = _clamp01((target.health or 0) / 20)
            features[8] = 1.0 if target.has_keyword(TAUNT) else 0.0
            features[9] = 1.0 if target.has_keyword(DIVINE_SHIELD) else 0.0
        features[7] = 1.0 if action.attack.targets_hero else 0.0
        return torch.tensor(features, dtype=torch.float32)

    def encode_batch(
        self,
        state_vector: torch.Tensor,
        actions: List[Action],
        state: Optional[GameStateView] = None,
    ) -> torch.Tensor:
        """
        Stack one (state, action) input row per action.

        Args:
            state_vector: Encoded state, shape (20,)
            actions: Actions to score
            state: State the actions apply to, used to look up attackers

        Returns:
            torch.Tensor of shape (len(actions), 35)
        """
        rows = [torch.cat([state_vector, self.encode(action, state)]) for action in actions]
        return torch.stack(rows)
