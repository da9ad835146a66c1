"""
Combat resolution and damage primitives.

All damage in the engine and in the search simulators goes through
apply_damage(), so Divine Shield, armor and death marking behave the same
everywhere. CombatSystem resolves declared attacks simultaneously: every
damage amount is computed from the pre-combat board, then applied.

Combat rules:
    - Frozen characters cannot be declared as attackers
    - Armor absorbs damage before health
    - Blockers (the attacked allies) strike back
    - Lethal: any damage from the source kills an ally
    - Overflow: attack beyond what the blocker can absorb hits the hero
    - An unblocked attack on a hero is answered by the defending hero's
      equipment attack; the equipment loses one durability
    - A hero loses one equipment durability per attack it makes
    - Freeze sources freeze what they damage
    - Lifesteal sources heal their owner's hero by the damage dealt
"""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from ccg.game.constants import DIVINE_SHIELD, FREEZE, LETHAL, LIFESTEAL, OVERFLOW
from ccg.game.entities import Card, Hero

logger = logging.getLogger(__name__)


@dataclass
class DamageEvent:
    """One application of damage: who dealt it, who took it, how much."""

    source: Any
    target: Any
    amount: int


def attack_value(entity) -> int:
    if isinstance(entity, Hero):
        return entity.total_attack()
    return entity.attack or 0


def apply_damage(target, amount: int) -> int:
    """
    Deal damage to a character.

    Args:
        target: Hero or ally card
        amount: Raw damage

    Returns:
        Damage actually dealt (0 when a Divine Shield absorbed it)

    Example:
        >>> knight = Card('Knight', attack=3, health=5, armor=2)
        >>> apply_damage(knight, 4)
        4
        >>> (knight.armor, knight.health)
        (0, 3)
    """
    if target is None or amount <= 0:
        return 0

    if target.has_keyword(DIVINE_SHIELD):
        target.remove_keyword(DIVINE_SHIELD)
        return 0

    remaining = amount
    if target.armor > 0:
        absorbed = min(target.armor, remaining)
        target.armor -= absorbed
        remaining -= absorbed

    if remaining > 0 and target.health is not None:
        target.health = max(0, target.health - remaining)
        if target.health <= 0:
            target.dead = True

    return amount


def apply_heal(target, amount: int) -> int:
    """Heal up to max health. Returns the amount healed."""
    if target is None or amount <= 0 or target.health is None:
        return 0
    cap = target.max_health if target.max_health is not None else target.health + amount
    healed = max(0, min(cap, target.health + amount) - target.health)
    target.health += healed
    return healed


def freeze(target, turns: int = 1) -> None:
    target.freeze_turns = max(target.freeze_turns, turns)


def note_enrage(card) -> bool:
    """
    Trigger enrage for a damaged, surviving ally.

    The attack bonus is applied once; the return value reports every
    qualifying trigger so callers can count them.
    """
    if not isinstance(card, Card) or not card.enrage or not card.is_alive:
        return False
    if card.max_health is None or card.health >= card.max_health:
        return False
    if not card.enraged:
        card.attack += card.enrage
        card.enraged = True
    return True


def discard_broken_equipment(hero: Hero) -> list:
    """Detach broken equipment and move its source cards to the owner's graveyard."""
    broken = hero.remove_broken_equipment()
    for eq in broken:
        if hero.owner is not None and eq.card is not None:
            hero.owner.graveyard.add(eq.card)
    return broken


@dataclass
class _DeclaredAttack:
    attacker: Any
    target: Any = None
    blockers: List[Any] = field(default_factory=list)


class CombatSystem:
    """
    Collects attack declarations and resolves them in one step.

    Example:
        >>> combat = CombatSystem()
        >>> combat.declare_attacker(raider, target=enemy_ally)
        True
        >>> events = combat.resolve()
        >>> [(e.target.name, e.amount) for e in events]
        [('Guard', 2), ('Raider', 5)]
    """

    def __init__(self):
        self._attacks: List[_DeclaredAttack] = []
        self.defender_hero: Optional[Hero] = None

    def declare_attacker(self, attacker, target=None) -> bool:
        """
        Declare an attack. Targeting an ally makes it the blocker.

        Returns:
            False if the attacker is frozen
        """
        if attacker.freeze_turns > 0:
            logger.debug(f"{attacker.name} is frozen and cannot attack")
            return False
        declared = _DeclaredAttack(attacker=attacker)
        if isinstance(target, Card):
            declared.blockers.append(target)
        else:
            declared.target = target
        self._attacks.append(declared)
        return True

    def assign_blocker(self, attacker_id: str, blocker) -> bool:
        for declared in self._attacks:
            if declared.attacker.id == attacker_id:
                declared.blockers.append(blocker)
                return True
        return False

    def set_defender_hero(self, hero: Hero) -> None:
        self.defender_hero = hero

    def clear(self) -> None:
        self._attacks = []
        self.defender_hero = None

    def resolve(self) -> List[DamageEvent]:
        """
        Resolve every declared attack simultaneously.

        Returns:
            DamageEvents in application order (zero-damage hits omitted)
        """
        pending = []
        heroes_to_check = []

        for declared in self._attacks:
            attacker = declared.attacker
            power = attack_value(attacker)

            if declared.blockers:
                share = power // len(declared.blockers) if len(declared.blockers) > 1 else power
                spent = 0
                for blocker in declared.blockers:
                    dealt = share
                    if attacker.has_keyword(OVERFLOW):
                        dealt = min(share, blocker.armor + (blocker.health or 0))
                    spent += dealt
                    pending.append((attacker, blocker, dealt))
                    pending.append((blocker, attacker, attack_value(blocker)))
                hero = declared.target or self.defender_hero
                if attacker.has_keyword(OVERFLOW) and hero is not None and power > spent:
                    pending.append((attacker, hero, power - spent))
            else:
                hero = declared.target or self.defender_hero
                if hero is not None:
                    pending.append((attacker, hero, power))
                    if isinstance(hero, Hero):
                        reflected = sum(eq.attack for eq in hero.equipment)
                        if reflected > 0:
                            pending.append((hero, attacker, reflected))
                            for eq in hero.equipment:
                                if eq.attack > 0:
                                    eq.durability -= 1
                            heroes_to_check.append(hero)

            if isinstance(attacker, Hero) and attacker.equipment:
                for eq in attacker.equipment:
                    eq.durability -= 1
                heroes_to_check.append(attacker)

        events = []
        for source, target, amount in pending:
            if amount <= 0:
                continue
            dealt = apply_damage(target, amount)
            if dealt <= 0:
                continue
            if source.has_keyword(LETHAL) and isinstance(target, Card) and target.is_alive:
                target.health = 0
                target.dead = True
            if source.has_keyword(FREEZE):
                freeze(target)
            if source.has_keyword(LIFESTEAL):
                owner_hero = source if isinstance(source, Hero) else getattr(source.owner, 'hero', None)
                apply_heal(owner_hero, dealt)
            events.append(DamageEvent(source=source, target=target, amount=dealt))

        for event in events:
            note_enrage(event.target)
        for hero in heroes_to_check:
            discard_broken_equipment(hero)

        self.clear()
        return events
