"""Starter card lists for demo matches and the simulation CLI."""

from typing import Any, Dict, List

from ccg.game.entities import Card

STARTER_CARDS: List[Dict[str, Any]] = [
    {'name': 'Footman', 'type': 'ally', 'cost': 1, 'attack': 1, 'health': 2},
    {'name': 'Squire', 'type': 'ally', 'cost': 1, 'attack': 2, 'health': 1},
    {'name': 'Archer', 'type': 'ally', 'cost': 2, 'attack': 2, 'health': 2},
    {'name': 'Shieldbearer', 'type': 'ally', 'cost': 2, 'attack': 1, 'health': 4,
     'keywords': ['Taunt']},
    {'name': 'Wolf Rider', 'type': 'ally', 'cost': 3, 'attack': 3, 'health': 1,
     'keywords': ['Rush']},
    {'name': 'Knight', 'type': 'ally', 'cost': 3, 'attack': 3, 'health': 3},
    {'name': 'Berserker', 'type': 'ally', 'cost': 3, 'attack': 2, 'health': 4, 'enrage': 3},
    {'name': 'Ogre', 'type': 'ally', 'cost': 4, 'attack': 4, 'health': 5},
    {'name': 'Golem', 'type': 'ally', 'cost': 5, 'attack': 5, 'health': 6, 'keywords': ['Taunt']},
    {'name': 'Zap', 'type': 'spell', 'cost': 1,
     'effects': [{'type': 'damage', 'target': 'any', 'amount': 2}]},
    {'name': 'Lightning Bolt', 'type': 'spell', 'cost': 1,
     'effects': [{'type': 'damage', 'target': 'any', 'amount': 3},
                 {'type': 'overload', 'amount': 1}]},
    {'name': 'Healing Potion', 'type': 'consumable', 'cost': 1,
     'effects': [{'type': 'heal', 'target': 'character', 'amount': 5}]},
    {'name': 'Power Word: Shield', 'type': 'spell', 'cost': 1,
     'effects': [{'type': 'buff', 'target': 'ally', 'property': 'health', 'amount': 2}]},
    {'name': 'Rallying Cry', 'type': 'spell', 'cost': 2,
     'effects': [{'type': 'buff', 'target': 'allies', 'property': 'attack', 'amount': 1,
                  'duration': 'thisTurn'}]},
    {'name': 'Call the Pack', 'type': 'spell', 'cost': 3,
     'effects': [{'type': 'summon', 'unit': {'name': 'Wolf', 'attack': 1, 'health': 1},
                  'count': 2}]},
    {'name': 'Mana Potion', 'type': 'consumable', 'cost': 0,
     'effects': [{'type': 'restore', 'amount': 2, 'requiresSpent': 2},
                 {'type': 'overload', 'amount': 1}]},
    {'name': 'Iron Sword', 'type': 'equipment', 'cost': 2, 'attack': 2, 'durability': 2},
]

STARTER_HERO_POWER = [{'type': 'damage', 'target': 'enemyHero', 'amount': 1}]


def starter_deck(copies: int = 2) -> List[Card]:
    """Fresh Card instances for a starter library."""
    return [Card.from_dict(data) for data in STARTER_CARDS for _ in range(copies)]
