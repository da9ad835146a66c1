"""
Card battle game engine package.

This package contains the live rules engine the AI plays against:
entities and zones, turn/resource bookkeeping, combat, targeting, the
effect system and the Game object that ties them together.
"""

from ccg.game.constants import (
    BATTLEFIELD_LIMIT,
    HAND_LIMIT,
    HERO_POWER_COST,
    MAX_RESOURCES,
    STARTING_HEALTH,
)
from ccg.game.entities import (
    Card,
    Deck,
    Equipment,
    GameException,
    GameStateError,
    Hand,
    Hero,
    IllegalActionError,
    Player,
    Zone,
    ensure_owner_links,
    short_id,
)
from ccg.game.resources import ResourceSystem, TurnSystem
from ccg.game.combat import CombatSystem, DamageEvent, apply_damage
from ccg.game.effects import EffectKind, EffectSystem
from ccg.game.engine import Game

__all__ = [
    "BATTLEFIELD_LIMIT",
    "HAND_LIMIT",
    "HERO_POWER_COST",
    "MAX_RESOURCES",
    "STARTING_HEALTH",
    "Card",
    "Deck",
    "Equipment",
    "GameException",
    "GameStateError",
    "Hand",
    "Hero",
    "IllegalActionError",
    "Player",
    "Zone",
    "ensure_owner_links",
    "short_id",
    "ResourceSystem",
    "TurnSystem",
    "CombatSystem",
    "DamageEvent",
    "apply_damage",
    "EffectKind",
    "EffectSystem",
    "Game",
]
