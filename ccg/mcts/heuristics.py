"""
Heuristic board evaluation and attack target scoring.

evaluate_game_state() is the scalar the search maximizes. It is linear in
board features, from the perspective of ``player``; swap the arguments for
the opponent's view.

The attack scoring helpers are the same rules the basic AI uses to pick
attack targets. The search reuses them for the attack sub-phase that
resolves the ``end`` action and for projecting the opponent's next attacks.
"""

from typing import Dict, Iterable, Optional

from ccg.game.constants import DIVINE_SHIELD, LETHAL, TAUNT
from ccg.game.entities import Card, Hero

# Evaluation weights
HERO_HEALTH_WEIGHT = 5.0
HAND_WEIGHT = 0.2
ALLY_COUNT_WEIGHT = 5.0
BOARD_ATTACK_WEIGHT = 1.5
BOARD_HEALTH_WEIGHT = 1.0
EQUIPMENT_WEIGHT = 2.0
GRAVEYARD_WEIGHT = 0.5
TURN_WEIGHT = 0.1
RESOURCE_WEIGHT = 0.05
TAUNT_WEIGHT = 2.0
FROZEN_WEIGHT = 2.0
OVERLOAD_WEIGHT = 1.0
TERMINAL_BONUS = 1000.0

# Enrage penalty per trigger: ENRAGE_BASE + ENRAGE_PER_ATTACK * attack gain
ENRAGE_BASE = 20.0
ENRAGE_PER_ATTACK = 8.0

# Attack target scoring
UNIT_BASE_VALUE = 5.0
UNIT_ATTACK_VALUE = 1.5
THREAT_WEIGHT = 5.0
FACE_WEIGHT = 5.0


def _side_features(player):
    allies = player.allies()
    characters = [player.hero] + allies
    return {
        'health': player.hero.health,
        'hand': len(player.hand),
        'allies': len(allies),
        'attack': sum(c.attack for c in allies),
        'board_health': sum(c.health or 0 for c in allies),
        'equipment': len(player.hero.equipment),
        'graveyard': len(player.graveyard),
        'taunts': sum(1 for c in allies if c.has_keyword(TAUNT)),
        'frozen': sum(1 for c in characters if c.freeze_turns > 0),
    }


def evaluate_game_state(
    player,
    opponent,
    turn: int = 0,
    resources: int = 0,
    overload_next_player: int = 0,
    overload_next_opponent: int = 0,
    enraged_opponent_this_turn: Optional[Dict[str, int]] = None,
) -> float:
    """
    Score a board from ``player``'s perspective.

    Args:
        player: Perspective side
        opponent: Other side
        turn: Global turn counter
        resources: Spendable pool of ``player``
        overload_next_player: Pending overload on ``player``
        overload_next_opponent: Pending overload on ``opponent``
        enraged_opponent_this_turn: Enrage trigger counts per opponent ally id

    Returns:
        Finite score; higher is better for ``player``

    Example:
        >>> evaluate_game_state(me, them, turn=3) > 0
        True
    """
    mine = _side_features(player)
    theirs = _side_features(opponent)

    score = 0.0
    score += HERO_HEALTH_WEIGHT * (mine['health'] - theirs['health'])
    score += HAND_WEIGHT * (mine['hand'] - theirs['hand'])
    score += ALLY_COUNT_WEIGHT * (mine['allies'] - theirs['allies'])
    score += BOARD_ATTACK_WEIGHT * (mine['attack'] - theirs['attack'])
    score += BOARD_HEALTH_WEIGHT * (mine['board_health'] - theirs['board_health'])
    score += EQUIPMENT_WEIGHT * (mine['equipment'] - theirs['equipment'])
    score += GRAVEYARD_WEIGHT * (mine['graveyard'] - theirs['graveyard'])
    score += TURN_WEIGHT * turn
    score += RESOURCE_WEIGHT * resources
    score += TAUNT_WEIGHT * (mine['taunts'] - theirs['taunts'])
    score -= FROZEN_WEIGHT * (mine['frozen'] - theirs['frozen'])
    score -= OVERLOAD_WEIGHT * overload_next_player
    score += OVERLOAD_WEIGHT * overload_next_opponent

    if player.hero.health <= 0:
        score -= TERMINAL_BONUS
    if opponent.hero.health <= 0:
        score += TERMINAL_BONUS

    if enraged_opponent_this_turn:
        for ally in opponent.allies():
            count = enraged_opponent_this_turn.get(ally.id, 0)
            if count and ally.enrage:
                score -= (ENRAGE_BASE + ENRAGE_PER_ATTACK * ally.enrage) * count

    return score


def evaluate_state(state) -> float:
    """evaluate_game_state() for a GameStateView."""
    return evaluate_game_state(
        state.player,
        state.opponent,
        turn=state.turn,
        resources=state.pool,
        overload_next_player=state.overload_next_player,
        overload_next_opponent=state.overload_next_opponent,
        enraged_opponent_this_turn=state.enraged_opponent_this_turn,
    )


def unit_value(card) -> float:
    return UNIT_BASE_VALUE + UNIT_ATTACK_VALUE * card.attack + (card.health or 0) + card.armor


def _kills(attack: int, attacker, target) -> bool:
    if target.has_keyword(DIVINE_SHIELD):
        return False
    if attacker.has_keyword(LETHAL) and attack > 0 and isinstance(target, Card):
        return True
    return attack >= (target.health or 0) + target.armor


def trade_score(attacker, attack: int, target) -> float:
    """
    Value of ``attacker`` (with ``attack`` power) hitting ally ``target``.

    Killing counts the target's value plus the threat it removes; losing the
    attacker subtracts its value. A hero attacker pays for the damage it
    takes at hero-health weight.
    """
    score = 0.0
    if _kills(attack, attacker, target):
        score += unit_value(target) + THREAT_WEIGHT * target.attack
    else:
        score += min(attack, (target.health or 0) + target.armor)

    if isinstance(attacker, Hero):
        score -= HERO_HEALTH_WEIGHT * target.attack
    elif _kills(target.attack, target, attacker):
        score -= unit_value(attacker)
    return score


def face_value(attack: int) -> float:
    return FACE_WEIGHT * attack


def choose_attack_target(attacker, attack: int, legal_targets: Iterable, enemy_hero):
    """
    Pick the attack target the basic AI would pick.

    Lethal on the hero first, then the best profitable trade if it beats
    going face, then face. Returns None when only unprofitable trades are
    allowed.

    Args:
        attacker: Attacking hero or ally
        attack: Its current attack value
        legal_targets: Targets allowed by Taunt/Stealth/Rush rules
        enemy_hero: The defending hero

    Returns:
        Chosen target or None
    """
    legal_targets = list(legal_targets)
    hero_allowed = any(t is enemy_hero for t in legal_targets)
    if hero_allowed and attack >= enemy_hero.health + enemy_hero.armor:
        return enemy_hero

    best = None
    best_score = float('-inf')
    for target in legal_targets:
        if target is enemy_hero:
            continue
        score = trade_score(attacker, attack, target)
        if score > best_score:
            best, best_score = target, score

    if hero_allowed:
        if best is not None and best_score > face_value(attack):
            return best
        return enemy_hero
    if best is not None and best_score > 0:
        return best
    return None
