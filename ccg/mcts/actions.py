"""
Action records produced by legal-action enumeration.

An Action is one of:
    - play a card           Action(card=card)
    - play a card + power   Action(card=card, use_power=True)
    - hero power only       Action(use_power=True)
    - attack                Action(attack=AttackDescriptor(...))
    - end the turn          Action(end=True)

``target_signature`` and ``resolved_targets`` are transient: the simulator
fills them in while applying the action so that the same card resolved onto
different targets gets a distinct signature, and so that the orchestrator
can pass the chosen targets to the live engine. They are excluded from
equality.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional


@dataclass
class AttackDescriptor:
    attacker_id: str
    target_id: Optional[str]
    attacker_type: str = 'ally'
    target_type: str = 'hero'

    @property
    def targets_hero(self) -> bool:
        return self.target_type == 'hero'


@dataclass
class Action:
    card: Any = None
    use_power: bool = False
    end: bool = False
    attack: Optional[AttackDescriptor] = None

    target_signature: Optional[str] = field(default=None, compare=False, repr=False)
    resolved_targets: List[str] = field(default_factory=list, compare=False, repr=False)

    @classmethod
    def end_turn(cls) -> "Action":
        return cls(end=True)

    @property
    def is_attack(self) -> bool:
        return self.attack is not None

    def describe(self) -> str:
        """Short human-readable form for logs."""
        if self.end:
            return 'end turn'
        if self.attack is not None:
            target = 'face' if self.attack.targets_hero else self.attack.target_id
            return f"attack {self.attack.attacker_id} -> {target}"
        parts = []
        if self.card is not None:
            parts.append(f"play {self.card.name}")
        if self.use_power:
            parts.append('hero power')
        return ' + '.join(parts) or 'pass'
