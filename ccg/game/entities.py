"""
Game entities for the card battle engine.

This module implements Card, Hero, Equipment, the zone containers (Zone,
Deck, Hand) and Player. Entities are plain mutable objects; the engine
mutates them in place and the search simulators clone them.

Two cloning paths exist:
    - copy.deepcopy: structural clone used by the fast simulator. Owner
      back-references are dropped by __getstate__ and restored with
      ensure_owner_links().
    - clone(): explicit reconstruction through the entity constructors,
      used by the full simulator so that the engine operates on genuine
      entity instances.
"""

import itertools
import random
from typing import Any, Dict, Iterator, List, Optional

from ccg.game.constants import (
    ALLY,
    BATTLEFIELD_LIMIT,
    CHARGE,
    HAND_LIMIT,
    HERO,
    QUEST,
    RUSH,
    STARTING_HEALTH,
    WINDFURY,
)


# ============================================================================
# Custom Exceptions
# ============================================================================


class GameException(Exception):
    """Base exception for card game errors."""

    pass


class IllegalActionError(GameException):
    """Raised when an entity helper is asked to do something the rules forbid."""

    def __init__(self, actor: str, action: str, reason: str):
        self.actor = actor
        self.action = action
        self.reason = reason
        super().__init__(f"{actor} cannot {action}: {reason}")


class GameStateError(GameException):
    """Raised when the game is in an invalid state for the requested operation."""

    pass


_id_counter = itertools.count(1)


def short_id(prefix: str = 'c') -> str:
    """Return a new process-unique entity id such as ``c-12``."""
    return f"{prefix}-{next(_id_counter)}"


# ============================================================================
# Card
# ============================================================================


class Card:
    """
    A card in any zone: an ally on the battlefield, a spell in hand, etc.

    Allies carry combat stats (attack/health/armor) and per-turn flags.
    Spells, equipment and consumables carry a list of effect dicts that the
    EffectSystem (live play) or the FastSimulator (search) resolves.

    Attributes:
        id: Stable identifier used by actions and signatures
        type: One of ally/spell/equipment/quest/consumable
        cost: Resource cost to play from hand
        keywords: Keyword names (Taunt, Rush, ...)
        effects: Effect dicts, e.g. {'type': 'damage', 'target': 'any', 'amount': 2}
        enrage: Attack gained the first time the ally survives damage (0 = none)
        attacks_used: Attacks made this turn
        summoning_sick: True for allies that entered this turn without Rush/Charge
        freeze_turns: Remaining turns the card cannot attack
        owner: Player back-reference (not preserved by structural clones)
    """

    def __init__(
        self,
        name: str,
        card_type: str = ALLY,
        cost: int = 0,
        attack: int = 0,
        health: Optional[int] = None,
        armor: int = 0,
        durability: int = 0,
        keywords: Optional[List[str]] = None,
        effects: Optional[List[Dict[str, Any]]] = None,
        spell_damage: int = 0,
        enrage: int = 0,
        card_id: Optional[str] = None,
        text: str = '',
    ):
        self.id = card_id or short_id()
        self.name = name
        self.type = card_type
        self.cost = cost
        self.attack = attack
        self.health = health
        self.max_health = health
        self.armor = armor
        self.durability = durability
        self.keywords: List[str] = list(keywords or [])
        self.effects: List[Dict[str, Any]] = [dict(e) for e in (effects or [])]
        self.spell_damage = spell_damage
        self.enrage = enrage
        self.text = text

        # Per-turn and status flags
        self.attacks_used = 0
        self.attacked = False
        self.entered_turn: Optional[int] = None
        self.summoning_sick = False
        self.freeze_turns = 0
        self.dead = False
        self.enraged = False

        # Part of attack granted by "thisTurn" buffs, removed at end of turn
        self.temp_attack = 0

        self.owner: Optional["Player"] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Card":
        """
        Build a card from a definition dict.

        Args:
            data: Mapping with name/type/cost/attack/health/keywords/effects
                  and optional armor/durability/spellDamage/enrage/id keys

        Returns:
            New Card instance

        Example:
            >>> card = Card.from_dict({'name': 'Footman', 'type': 'ally',
            ...                        'cost': 1, 'attack': 1, 'health': 2})
            >>> card.max_health
            2
        """
        return cls(
            name=data.get('name', 'Token'),
            card_type=data.get('type', ALLY),
            cost=data.get('cost', 0),
            attack=data.get('attack', 0),
            health=data.get('health'),
            armor=data.get('armor', 0),
            durability=data.get('durability', 0),
            keywords=data.get('keywords'),
            effects=data.get('effects'),
            spell_damage=data.get('spellDamage', 0),
            enrage=data.get('enrage', 0),
            card_id=data.get('id'),
            text=data.get('text', ''),
        )

    @property
    def is_ally(self) -> bool:
        return self.type == ALLY

    @property
    def is_alive(self) -> bool:
        return not self.dead and (self.health is None or self.health > 0)

    @property
    def max_attacks(self) -> int:
        return 2 if WINDFURY in self.keywords else 1

    def has_keyword(self, keyword: str) -> bool:
        return keyword in self.keywords

    def add_keyword(self, keyword: str) -> None:
        if keyword not in self.keywords:
            self.keywords.append(keyword)

    def remove_keyword(self, keyword: str) -> None:
        if keyword in self.keywords:
            self.keywords.remove(keyword)

    def enter_play(self, turn: int) -> None:
        """Mark an ally as having entered the battlefield on ``turn``."""
        self.entered_turn = turn
        self.attacks_used = 0
        self.attacked = False
        self.summoning_sick = not (self.has_keyword(RUSH) or self.has_keyword(CHARGE))

    def clone(self) -> "Card":
        """Return a new Card with the same identity and state, without owner."""
        copy_ = Card(
            name=self.name,
            card_type=self.type,
            cost=self.cost,
            attack=self.attack,
            health=self.health,
            armor=self.armor,
            durability=self.durability,
            keywords=self.keywords,
            effects=self.effects,
            spell_damage=self.spell_damage,
            enrage=self.enrage,
            card_id=self.id,
            text=self.text,
        )
        copy_.max_health = self.max_health
        copy_.attacks_used = self.attacks_used
        copy_.attacked = self.attacked
        copy_.entered_turn = self.entered_turn
        copy_.summoning_sick = self.summoning_sick
        copy_.freeze_turns = self.freeze_turns
        copy_.dead = self.dead
        copy_.enraged = self.enraged
        copy_.temp_attack = self.temp_attack
        return copy_

    def __getstate__(self) -> Dict[str, Any]:
        state = self.__dict__.copy()
        state['owner'] = None
        return state

    def __repr__(self) -> str:
        if self.is_ally:
            return f"Card({self.name} {self.attack}/{self.health}, id={self.id})"
        return f"Card({self.name} [{self.type}] cost={self.cost}, id={self.id})"


# ============================================================================
# Equipment
# ============================================================================


class Equipment:
    """A weapon or armor piece attached to a hero."""

    def __init__(
        self,
        name: str,
        attack: int = 0,
        armor: int = 0,
        durability: int = 1,
        spell_damage: int = 0,
        card: Optional[Card] = None,
        equipment_id: Optional[str] = None,
    ):
        self.id = equipment_id or short_id('e')
        self.name = name
        self.attack = attack
        self.armor = armor
        self.durability = durability
        self.spell_damage = spell_damage
        self.card = card

    @classmethod
    def from_card(cls, card: Card) -> "Equipment":
        return cls(
            name=card.name,
            attack=card.attack,
            armor=card.armor,
            durability=card.durability or 1,
            spell_damage=card.spell_damage,
            card=card,
            equipment_id=card.id,
        )

    @property
    def broken(self) -> bool:
        return self.durability <= 0

    def clone(self) -> "Equipment":
        return Equipment(
            name=self.name,
            attack=self.attack,
            armor=self.armor,
            durability=self.durability,
            spell_damage=self.spell_damage,
            card=self.card.clone() if self.card is not None else None,
            equipment_id=self.id,
        )

    def __repr__(self) -> str:
        return f"Equipment({self.name} atk={self.attack} dur={self.durability})"


# ============================================================================
# Hero
# ============================================================================


class Hero:
    """
    A player's hero.

    The hero is a character: it can be damaged, healed, frozen and can
    attack when it has attack from its base stat or equipment. Its hero
    power is the list of effect dicts in ``active``.
    """

    type = HERO

    def __init__(
        self,
        name: str = 'Hero',
        health: int = STARTING_HEALTH,
        armor: int = 0,
        attack: int = 0,
        active: Optional[List[Dict[str, Any]]] = None,
        spell_damage: int = 0,
        keywords: Optional[List[str]] = None,
        hero_id: Optional[str] = None,
    ):
        self.id = hero_id or short_id('h')
        self.name = name
        self.health = health
        self.max_health = health
        self.armor = armor
        self.attack = attack
        self.active: List[Dict[str, Any]] = [dict(e) for e in (active or [])]
        self.spell_damage = spell_damage
        self.keywords: List[str] = list(keywords or [])
        self.equipment: List[Equipment] = []

        self.power_used = False
        self.temp_spell_damage = 0
        self.temp_attack = 0
        self.attacks_used = 0
        self.attacked = False
        self.freeze_turns = 0
        self.dead = False
        self.owner: Optional["Player"] = None

    @property
    def is_alive(self) -> bool:
        return self.health > 0

    @property
    def max_attacks(self) -> int:
        return 1

    def has_keyword(self, keyword: str) -> bool:
        return keyword in self.keywords

    def remove_keyword(self, keyword: str) -> None:
        if keyword in self.keywords:
            self.keywords.remove(keyword)

    def total_attack(self) -> int:
        """Base attack plus equipment attack plus temporary bonuses."""
        return self.attack + self.temp_attack + sum(eq.attack for eq in self.equipment)

    def total_spell_damage(self) -> int:
        return (
            self.spell_damage
            + self.temp_spell_damage
            + sum(eq.spell_damage for eq in self.equipment)
        )

    def equip(self, equipment: Equipment) -> List[Equipment]:
        """
        Equip a new item, replacing any existing equipment.

        Args:
            equipment: Equipment to attach

        Returns:
            List of replaced equipment (caller moves them to the graveyard)
        """
        replaced = self.equipment
        self.equipment = [equipment]
        self.armor += equipment.armor
        return replaced

    def remove_broken_equipment(self) -> List[Equipment]:
        broken = [eq for eq in self.equipment if eq.broken]
        if broken:
            self.equipment = [eq for eq in self.equipment if not eq.broken]
        return broken

    def clone(self) -> "Hero":
        copy_ = Hero(
            name=self.name,
            health=self.health,
            armor=self.armor,
            attack=self.attack,
            active=self.active,
            spell_damage=self.spell_damage,
            keywords=self.keywords,
            hero_id=self.id,
        )
        copy_.max_health = self.max_health
        copy_.equipment = [eq.clone() for eq in self.equipment]
        copy_.power_used = self.power_used
        copy_.temp_spell_damage = self.temp_spell_damage
        copy_.temp_attack = self.temp_attack
        copy_.attacks_used = self.attacks_used
        copy_.attacked = self.attacked
        copy_.freeze_turns = self.freeze_turns
        copy_.dead = self.dead
        return copy_

    def __getstate__(self) -> Dict[str, Any]:
        state = self.__dict__.copy()
        state['owner'] = None
        return state

    def __repr__(self) -> str:
        return f"Hero({self.name} hp={self.health} armor={self.armor})"


# ============================================================================
# Zones
# ============================================================================


class Zone:
    """Ordered card container. Index 0 is the oldest card."""

    def __init__(self, name: str, limit: Optional[int] = None):
        self.name = name
        self.limit = limit
        self.cards: List[Card] = []

    def add(self, card: Card) -> Optional[Card]:
        """Append a card. Returns None when the zone is full."""
        if self.limit is not None and len(self.cards) >= self.limit:
            return None
        self.cards.append(card)
        return card

    def remove(self, card: Card) -> bool:
        for i, existing in enumerate(self.cards):
            if existing is card or existing.id == card.id:
                del self.cards[i]
                return True
        return False

    def find(self, card_id: str) -> Optional[Card]:
        for card in self.cards:
            if card.id == card_id:
                return card
        return None

    def size(self) -> int:
        return len(self.cards)

    def __len__(self) -> int:
        return len(self.cards)

    def __iter__(self) -> Iterator[Card]:
        return iter(self.cards)

    def __repr__(self) -> str:
        return f"Zone({self.name}, {len(self.cards)} cards)"


class Deck(Zone):
    """Library zone. Draws come off the end of the list."""

    def __init__(self, cards: Optional[List[Card]] = None):
        super().__init__('library')
        self.cards = list(cards or [])

    def shuffle(self, rng: Optional[random.Random] = None) -> None:
        (rng or random).shuffle(self.cards)

    def draw(self) -> Optional[Card]:
        if not self.cards:
            return None
        return self.cards.pop()


class Hand(Zone):
    def __init__(self):
        super().__init__('hand', limit=HAND_LIMIT)


# ============================================================================
# Player
# ============================================================================


class Player:
    """
    One side of the match: a hero and its zones.

    Attributes:
        library: Deck to draw from
        hand: Cards in hand (limit HAND_LIMIT)
        battlefield: Allies and quests in play, oldest first
        graveyard: Dead allies, resolved spells, broken equipment
        removed: Cards removed from the game
        cards_played_this_turn: Counter reset at the start of each turn
    """

    def __init__(self, name: str, hero: Optional[Hero] = None, player_id: Optional[str] = None):
        self.id = player_id or short_id('p')
        self.name = name
        self.hero = hero or Hero(name=f"{name}'s hero")
        self.library = Deck()
        self.hand = Hand()
        self.battlefield = Zone('battlefield')
        self.graveyard = Zone('graveyard')
        self.removed = Zone('removed')
        self.cards_played_this_turn = 0
        # Human players are asked for targets through the game prompt
        self.human = False
        ensure_owner_links(self)

    def allies(self) -> List[Card]:
        """Living allies on the battlefield, oldest first."""
        return [c for c in self.battlefield.cards if c.is_ally and c.is_alive]

    def characters(self) -> list:
        """Hero followed by living allies."""
        return [self.hero] + self.allies()

    def find_character(self, entity_id: str):
        if self.hero.id == entity_id:
            return self.hero
        card = self.battlefield.find(entity_id)
        if card is not None and card.is_ally:
            return card
        return None

    def bury_dead(self) -> List[Card]:
        """Move dead allies from the battlefield to the graveyard."""
        buried = []
        for card in list(self.battlefield.cards):
            if card.is_ally and not card.is_alive:
                card.dead = True
                self.battlefield.remove(card)
                self.graveyard.add(card)
                buried.append(card)
        if self.hero.health <= 0:
            self.hero.dead = True
        return buried

    def spell_damage_bonus(self) -> int:
        return self.hero.total_spell_damage() + sum(c.spell_damage for c in self.allies())

    def add_to_battlefield(self, card: Card) -> List[Card]:
        """
        Put a card onto the battlefield, removing the oldest allies past the limit.

        Returns:
            Allies removed to the graveyard by overflow
        """
        if card.type not in (ALLY, QUEST):
            raise IllegalActionError(
                self.name, f"put {card.name} on the battlefield", f"{card.type} cards do not stay in play"
            )
        card.owner = self
        self.battlefield.add(card)
        removed = []
        while len([c for c in self.battlefield.cards if c.is_ally]) > BATTLEFIELD_LIMIT:
            oldest = next(c for c in self.battlefield.cards if c.is_ally)
            self.battlefield.remove(oldest)
            oldest.dead = True
            self.graveyard.add(oldest)
            removed.append(oldest)
        return removed

    def clone(self) -> "Player":
        copy_ = Player(self.name, hero=self.hero.clone(), player_id=self.id)
        copy_.library.cards = [c.clone() for c in self.library.cards]
        copy_.hand.cards = [c.clone() for c in self.hand.cards]
        copy_.battlefield.cards = [c.clone() for c in self.battlefield.cards]
        copy_.graveyard.cards = [c.clone() for c in self.graveyard.cards]
        copy_.removed.cards = [c.clone() for c in self.removed.cards]
        copy_.cards_played_this_turn = self.cards_played_this_turn
        copy_.human = self.human
        ensure_owner_links(copy_)
        return copy_

    def __repr__(self) -> str:
        return (
            f"Player({self.name}, hp={self.hero.health}, hand={len(self.hand)}, "
            f"board={len(self.battlefield)})"
        )


def ensure_owner_links(player: Player, include_library: bool = True) -> Player:
    """
    Re-establish owner back-references for every entity a player holds.

    Idempotent; safe to call after any clone. Pass include_library=False
    when the library is shared with another Player instance.
    """
    player.hero.owner = player
    zones = [player.hand, player.battlefield, player.graveyard, player.removed]
    if include_library:
        zones.append(player.library)
    for zone in zones:
        for card in zone.cards:
            card.owner = player
    return player
