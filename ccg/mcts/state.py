"""
Search state record.

GameStateView is the unit the search operates on: both players (live
entities at the root, clones inside the tree) plus the per-turn scalars the
entities do not carry themselves.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set

from ccg.game.constants import CHARGE, RUSH
from ccg.game.entities import Player


@dataclass
class GameStateView:
    """
    Attributes:
        player: Side to move (the AI)
        opponent: The other side
        pool: Spendable resources of ``player``
        turn: Global turn counter
        power_available: Hero power can still be used this turn
        overload_next_player: Overload that will reduce the player's next pool
        overload_next_opponent: Same for the opponent
        entered_this_turn: Ids of the player's allies that entered this turn
        temp_spell_damage: Spell damage granted until end of turn
        base_hero_spell_damage: Hero + equipment spell damage at the root
        enraged_player_this_turn: Enrage trigger counts per ally id (player side)
        enraged_opponent_this_turn: Enrage trigger counts per ally id (opponent side)
        game: Throwaway Game when the state belongs to the full simulator
    """

    player: Player
    opponent: Player
    pool: int = 0
    turn: int = 1
    power_available: bool = False
    overload_next_player: int = 0
    overload_next_opponent: int = 0
    entered_this_turn: Set[str] = field(default_factory=set)
    temp_spell_damage: int = 0
    base_hero_spell_damage: int = 0
    enraged_player_this_turn: Dict[str, int] = field(default_factory=dict)
    enraged_opponent_this_turn: Dict[str, int] = field(default_factory=dict)
    game: Any = field(default=None, compare=False, repr=False)

    # Memoized guidance result; reset on every clone
    _guidance: Any = field(default=None, compare=False, repr=False)


def can_use_power(player: Player) -> bool:
    return bool(player.hero.active) and not player.hero.power_used


def state_from_live(game, player: Player, opponent: Player) -> GameStateView:
    """
    Snapshot the scalars of a live game around the live players.

    The players are referenced, not copied; the search clones before
    mutating anything.
    """
    turn = game.turns.turn
    hero = player.hero
    entered = {
        card.id for card in player.battlefield.cards
        if card.is_ally and card.entered_turn == turn
    }
    return GameStateView(
        player=player,
        opponent=opponent,
        pool=game.resources.pool(player),
        turn=turn,
        power_available=can_use_power(player),
        overload_next_player=game.resources.pending_overload(player),
        overload_next_opponent=game.resources.pending_overload(opponent),
        entered_this_turn=entered,
        temp_spell_damage=hero.temp_spell_damage,
        base_hero_spell_damage=hero.spell_damage + sum(eq.spell_damage for eq in hero.equipment),
    )


def can_hit_face(card, state: GameStateView) -> bool:
    """Rush allies that entered this turn may only attack allies."""
    if card.id in state.entered_this_turn and card.has_keyword(RUSH) and not card.has_keyword(CHARGE):
        return False
    return True
