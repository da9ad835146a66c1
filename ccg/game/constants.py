"""
Game constants for the card battle engine.

This module defines the rule constants shared by the live engine, the
search simulators and the evaluator: keyword names, card types, zone limits
and resource caps.
"""

# Keywords
TAUNT = 'Taunt'
RUSH = 'Rush'
CHARGE = 'Charge'
STEALTH = 'Stealth'
WINDFURY = 'Windfury'
DIVINE_SHIELD = 'Divine Shield'
LETHAL = 'Lethal'
OVERFLOW = 'Overflow'
FREEZE = 'Freeze'
LIFESTEAL = 'Lifesteal'
BATTLECRY = 'Battlecry'
REFLECT = 'Reflect'

KEYWORDS = [
    TAUNT, RUSH, CHARGE, STEALTH, WINDFURY, DIVINE_SHIELD,
    LETHAL, OVERFLOW, FREEZE, LIFESTEAL, BATTLECRY, REFLECT,
]

# Card types
ALLY = 'ally'
SPELL = 'spell'
EQUIPMENT = 'equipment'
QUEST = 'quest'
CONSUMABLE = 'consumable'
HERO = 'hero'

CARD_TYPES = [ALLY, SPELL, EQUIPMENT, QUEST, CONSUMABLE]

# Spell-like cards go to the graveyard after resolving
ONE_SHOT_TYPES = (SPELL, CONSUMABLE)

# Resources
MAX_RESOURCES = 10
HERO_POWER_COST = 2

# Zone limits
HAND_LIMIT = 10
BATTLEFIELD_LIMIT = 5

# Heroes
STARTING_HEALTH = 30

# Turn phases, in order
PHASES = ['Start', 'Resource', 'Main', 'Combat', 'End']
