"""
State fingerprints and action signatures.

fingerprint() serializes everything the search's decisions depend on into
one string, so two states with equal fingerprints can share a search tree.
Zone order is part of the fingerprint; entity ids are not, which lets a
simulated child state match the live state after the same action even when
summoned tokens got different ids.

action_signature() keys policy priors and resolved targets by action.
"""

import logging
from typing import Optional

from ccg.mcts.actions import Action

logger = logging.getLogger(__name__)


def card_signature(card) -> str:
    """
    Stable key for a card.

    Example:
        >>> card_signature(Card('Footman', attack=1, health=2, card_id='c-1'))
        'id:c-1'
    """
    if card is None:
        return 'none'
    if getattr(card, 'id', None):
        return f"id:{card.id}"
    parts = [
        f"name:{card.name}",
        f"type:{card.type}",
        f"cost:{card.cost}",
        f"atk:{card.attack}",
        f"hp:{card.health}",
    ]
    if card.armor:
        parts.append(f"armor:{card.armor}")
    if card.durability:
        parts.append(f"dur:{card.durability}")
    if card.keywords:
        parts.append(f"kw:{','.join(sorted(card.keywords))}")
    return '|'.join(parts)


def action_signature(action: Action) -> str:
    parts = [
        card_signature(action.card) if action.card is not None else 'card:none',
        f"power:{int(bool(action.use_power))}",
        f"end:{int(bool(action.end))}",
    ]
    if action.attack is not None:
        target = 'face' if action.attack.targets_hero else action.attack.target_id
        parts.append(f"atk:{action.attack.attacker_id}->{target}")
    if action.target_signature:
        parts.append(f"tgt:{action.target_signature}")
    return '|'.join(parts)


def _card_key(card) -> str:
    keywords = ','.join(sorted(card.keywords))
    return (
        f"{card.cost}/{card.attack}/{card.health}/{card.armor}/{card.durability}/"
        f"{keywords}/{card.attacks_used}/{card.freeze_turns}"
    )


def _zone_key(zone) -> str:
    return ';'.join(_card_key(card) for card in zone.cards)


def _hero_key(hero) -> str:
    equipment = ','.join(f"{eq.attack}:{eq.armor}:{eq.durability}" for eq in hero.equipment)
    return (
        f"{hero.health}/{hero.armor}/{hero.total_attack()}/{int(hero.power_used)}/"
        f"{hero.total_spell_damage()}/{','.join(sorted(hero.keywords))}/"
        f"{hero.freeze_turns}/{hero.attacks_used}/[{equipment}]"
    )


def _side_key(player) -> str:
    return '#'.join([
        _hero_key(player.hero),
        _zone_key(player.hand),
        _zone_key(player.battlefield),
        _zone_key(player.graveyard),
    ])


def fingerprint(state) -> Optional[str]:
    """
    Deterministic digest of a search state.

    Returns:
        The fingerprint string, or None if the state cannot be serialized.
        None never matches anything, so callers fall back to a fresh tree.
    """
    try:
        header = (
            f"t{state.turn}|r{state.pool}|p{int(bool(state.power_available))}|"
            f"o{state.overload_next_player}/{state.overload_next_opponent}"
        )
        return '||'.join([header, _side_key(state.player), _side_key(state.opponent)])
    except Exception as e:
        logger.debug(f"Could not fingerprint state: {e}")
        return None
