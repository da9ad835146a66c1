"""
Effect taxonomy and live effect resolution.

Card and hero power effects are plain dicts tagged by ``type``:

    {'type': 'damage', 'target': 'any', 'amount': 2}
    {'type': 'buff', 'target': 'allies', 'property': 'attack', 'amount': 1,
     'duration': 'thisTurn'}
    {'type': 'summon', 'unit': {'name': 'Wolf', 'attack': 1, 'health': 1}, 'count': 2}
    {'type': 'restore', 'amount': 2, 'requiresSpent': 2}

EffectKind is the closed set of effect types. EffectSystem maps every kind
to an async handler; the fast simulator in ccg.mcts.simulation registers
handlers for a subset of the same kinds.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ccg.game.combat import apply_damage, apply_heal, freeze, note_enrage
from ccg.game.constants import ALLY, SPELL, CONSUMABLE
from ccg.game.entities import Card, Hero
from ccg.game.targeting import select_targets

logger = logging.getLogger(__name__)


class EffectKind(Enum):
    DAMAGE = 'damage'
    HEAL = 'heal'
    BUFF = 'buff'
    SUMMON = 'summon'
    RESTORE = 'restore'
    OVERLOAD = 'overload'
    DRAW = 'draw'
    FREEZE = 'freeze'
    DESTROY = 'destroy'
    SILENCE = 'silence'
    RAW_TEXT = 'rawText'

    @classmethod
    def of(cls, effect: Dict[str, Any]) -> Optional["EffectKind"]:
        try:
            return cls(effect.get('type'))
        except ValueError:
            return None


# Target spec -> whether it names several targets at once
MULTI_TARGET_SPECS = {'allEnemies', 'allEnemyAllies', 'allies', 'allFriendlyAllies', 'all'}


def target_candidates(spec: str, player, opponent) -> List[Any]:
    """
    Characters a target spec can refer to.

    Enemy Stealth allies are hidden; Taunt does not restrict effects.
    """
    if spec in ('any', 'character'):
        friendly = player.characters()
        hostile = select_targets(opponent.characters(), respect_taunt=False)
        return friendly + hostile
    if spec == 'enemy':
        return select_targets(opponent.characters(), respect_taunt=False)
    if spec in ('enemyAlly', 'enemyMinion'):
        return select_targets(opponent.allies(), respect_taunt=False)
    if spec == 'enemyHero':
        return [opponent.hero]
    if spec in ('ally', 'minion', 'friendlyAlly'):
        return player.allies()
    if spec == 'friendly':
        return player.characters()
    if spec in ('hero', 'self'):
        return [player.hero]
    if spec == 'allEnemies':
        return opponent.characters()
    if spec == 'allEnemyAllies':
        return opponent.allies()
    if spec == 'allies':
        return player.characters()
    if spec == 'allFriendlyAllies':
        return player.allies()
    if spec == 'all':
        return player.characters() + opponent.characters()
    return []


def apply_buff(target, effect: Dict[str, Any]) -> None:
    """Apply a stat buff (possibly negative) to a hero or ally."""
    prop = effect.get('property', 'attack')
    amount = effect.get('amount', 0) or 0
    temporary = effect.get('duration') == 'thisTurn'

    if prop == 'attack':
        if isinstance(target, Hero):
            if temporary:
                target.temp_attack += amount
            else:
                target.attack += amount
        else:
            target.attack = max(0, target.attack + amount)
            if temporary:
                target.temp_attack += amount
    elif prop == 'health':
        if target.max_health is not None:
            target.max_health += amount
        target.health = (target.health or 0) + amount
        if target.health <= 0:
            target.dead = True
    elif prop == 'armor':
        target.armor = max(0, target.armor + amount)
    elif prop == 'spellDamage':
        if isinstance(target, Hero) and temporary:
            target.temp_spell_damage += amount
        else:
            target.spell_damage += amount
    else:
        logger.debug(f"Ignoring buff of unknown property '{prop}'")


def revert_temporary(player) -> None:
    """Remove "thisTurn" bonuses from a player's hero and allies."""
    player.hero.temp_attack = 0
    player.hero.temp_spell_damage = 0
    for card in player.battlefield.cards:
        if card.temp_attack:
            card.attack = max(0, card.attack - card.temp_attack)
            card.temp_attack = 0


@dataclass
class EffectContext:
    """Everything a handler needs to resolve one effect."""

    player: Any
    opponent: Any
    source: Any = None
    preferred_targets: List[str] = field(default_factory=list)
    chosen: List[Any] = field(default_factory=list)

    @property
    def is_spell(self) -> bool:
        return isinstance(self.source, Card) and self.source.type in (SPELL, CONSUMABLE)


Handler = Callable[[Dict[str, Any], EffectContext], Awaitable[None]]


class EffectSystem:
    """
    Resolves effect lists against a live Game.

    Every EffectKind has a registered handler. Handlers that need a single
    target ask Game.choose_target(), which consults the preferred-target
    hint, the prompt callback (human players) or auto-targeting.

    Example:
        >>> ctx = EffectContext(player=me, opponent=them, source=zap_card)
        >>> await game.effects.execute(zap_card.effects, ctx)
    """

    def __init__(self, game):
        self.game = game
        self.handlers: Dict[EffectKind, Handler] = {
            EffectKind.DAMAGE: self._damage,
            EffectKind.HEAL: self._heal,
            EffectKind.BUFF: self._buff,
            EffectKind.SUMMON: self._summon,
            EffectKind.RESTORE: self._restore,
            EffectKind.OVERLOAD: self._overload,
            EffectKind.DRAW: self._draw,
            EffectKind.FREEZE: self._freeze,
            EffectKind.DESTROY: self._destroy,
            EffectKind.SILENCE: self._silence,
            EffectKind.RAW_TEXT: self._raw_text,
        }

    def register(self, kind: EffectKind, handler: Handler) -> None:
        self.handlers[kind] = handler

    async def execute(self, effects: List[Dict[str, Any]], ctx: EffectContext) -> List[Any]:
        """
        Resolve effects in order.

        Returns:
            Targets chosen for single-target effects
        """
        for effect in effects or ():
            kind = EffectKind.of(effect)
            if kind is None:
                logger.warning(f"Skipping effect of unknown type: {effect.get('type')!r}")
                continue
            await self.handlers[kind](effect, ctx)
        return ctx.chosen

    async def _targets(self, effect: Dict[str, Any], ctx: EffectContext, default: str) -> List[Any]:
        spec = effect.get('target', default)
        candidates = target_candidates(spec, ctx.player, ctx.opponent)
        if spec in MULTI_TARGET_SPECS:
            return candidates
        target = await self.game.choose_target(candidates, effect, ctx)
        if target is None:
            return []
        ctx.chosen.append(target)
        return [target]

    async def _damage(self, effect, ctx):
        amount = effect.get('amount', 0) or 0
        if ctx.is_spell:
            amount += ctx.player.spell_damage_bonus()
        for target in await self._targets(effect, ctx, 'any'):
            dealt = apply_damage(target, amount)
            note_enrage(target)
            if effect.get('freeze') and dealt > 0:
                freeze(target)
            self.game.bus.emit('damageDealt', {'source': ctx.source, 'target': target, 'amount': dealt})

    async def _heal(self, effect, ctx):
        for target in await self._targets(effect, ctx, 'character'):
            apply_heal(target, effect.get('amount', 0) or 0)

    async def _buff(self, effect, ctx):
        for target in await self._targets(effect, ctx, 'character'):
            apply_buff(target, effect)

    async def _summon(self, effect, ctx):
        unit = dict(effect.get('unit') or {})
        unit['type'] = ALLY
        unit.pop('id', None)
        for _ in range(effect.get('count', 1) or 1):
            token = Card.from_dict(unit)
            token.enter_play(self.game.turns.turn)
            ctx.player.add_to_battlefield(token)
            self.game.bus.emit('allySummoned', {'player': ctx.player, 'card': token})

    async def _restore(self, effect, ctx):
        self.game.resources.restore(ctx.player, effect.get('amount', 0) or 0)

    async def _overload(self, effect, ctx):
        self.game.resources.add_overload_next_turn(ctx.player, effect.get('amount', 0) or 0)

    async def _draw(self, effect, ctx):
        self.game.draw(ctx.player, effect.get('count', effect.get('amount', 1)) or 1)

    async def _freeze(self, effect, ctx):
        for target in await self._targets(effect, ctx, 'enemy'):
            freeze(target, effect.get('turns', 1) or 1)

    async def _destroy(self, effect, ctx):
        for target in await self._targets(effect, ctx, 'enemyAlly'):
            if isinstance(target, Card):
                target.health = 0
                target.dead = True

    async def _silence(self, effect, ctx):
        for target in await self._targets(effect, ctx, 'enemyAlly'):
            if isinstance(target, Card):
                target.keywords = []
                target.enrage = 0
                target.spell_damage = 0

    async def _raw_text(self, effect, ctx):
        logger.debug(f"Text-only effect: {effect.get('text', '')}")
