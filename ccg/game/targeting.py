"""
Target legality and automatic target choice.

select_targets() applies the two visibility rules every targeting decision
shares: Stealth hides a character unless the caller allows it, and a Taunt
on the remaining candidates forces targeting the Taunts.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence

from ccg.game.constants import STEALTH, TAUNT
from ccg.game.entities import Card, Hero

HARMFUL_EFFECTS = {'damage', 'destroy', 'freeze', 'silence'}


def is_targetable(entity, allow_stealth_targeting: bool = False) -> bool:
    if entity is None or not entity.is_alive:
        return False
    if entity.has_keyword(STEALTH) and not allow_stealth_targeting:
        return False
    return True


def enforce_taunt(candidates: Iterable[Any]) -> List[Any]:
    """Return only the living Taunt allies if any exist, else all candidates."""
    candidates = list(candidates)
    taunts = [c for c in candidates if isinstance(c, Card) and c.has_keyword(TAUNT) and c.is_alive]
    return taunts if taunts else candidates


def select_targets(
    candidates: Iterable[Any],
    allow_stealth_targeting: bool = False,
    respect_taunt: bool = True,
) -> List[Any]:
    visible = [c for c in candidates if is_targetable(c, allow_stealth_targeting)]
    return enforce_taunt(visible) if respect_taunt else visible


def attack_targets(opponent, can_hit_face: bool = True) -> List[Any]:
    """
    Legal targets for an attack against ``opponent``.

    Taunt is enforced before the hero is excluded, so a Rush ally facing a
    Taunt may only attack the Taunt.
    """
    legal = select_targets([opponent.hero] + opponent.allies())
    if not can_hit_face:
        legal = [t for t in legal if not isinstance(t, Hero)]
    return legal


def is_friendly(entity, player) -> bool:
    return getattr(entity, 'owner', None) is player


def auto_select_target(
    candidates: Sequence[Any],
    effect: Dict[str, Any],
    player,
    preferred: Optional[Sequence[str]] = None,
):
    """
    Pick a target without a prompt.

    A preferred id (from the search's resolved targets) wins when it is
    among the candidates. Otherwise harmful effects go to enemies and
    beneficial ones to friends, using simple value rules.

    Args:
        candidates: Legal targets
        effect: Effect dict being resolved
        player: Player resolving the effect
        preferred: Ids to prefer, in order

    Returns:
        Chosen target, or None when there are no candidates
    """
    if not candidates:
        return None

    for wanted in preferred or ():
        for candidate in candidates:
            if candidate.id == wanted:
                return candidate

    kind = effect.get('type')
    amount = effect.get('amount', 0) or 0
    friendly = [c for c in candidates if is_friendly(c, player)]
    enemies = [c for c in candidates if not is_friendly(c, player)]
    harmful = kind in HARMFUL_EFFECTS or (kind == 'buff' and amount < 0)

    if harmful:
        pool = enemies or list(candidates)
        hero = next((c for c in pool if isinstance(c, Hero)), None)
        if kind == 'damage':
            if hero is not None and hero.health + hero.armor <= amount:
                return hero
            killable = [
                c for c in pool
                if isinstance(c, Card) and (c.health or 0) + c.armor <= amount
            ]
            if killable:
                return max(killable, key=lambda c: c.attack)
            if hero is not None:
                return hero
        if kind == 'buff' and effect.get('property') == 'armor':
            armored = [c for c in pool if c.armor > 0]
            if armored:
                return max(armored, key=lambda c: c.armor)
        return max(pool, key=lambda c: getattr(c, 'attack', 0))

    pool = friendly or list(candidates)
    if kind == 'heal':
        injured = [c for c in pool if c.health < (c.max_health or c.health)]
        if injured:
            return max(injured, key=lambda c: c.max_health - c.health)
        return pool[0]
    if kind == 'buff':
        allies = [c for c in pool if isinstance(c, Card)]
        if effect.get('property') == 'health':
            injured = [c for c in allies if c.health < (c.max_health or c.health)]
            if injured:
                return max(injured, key=lambda c: c.max_health - c.health)
        if allies:
            return max(allies, key=lambda c: c.attack)
    return pool[0]
