"""
Live game engine.

Game owns two players and the collaborating systems (turns, resources,
combat, effects, event bus). Its public mutators are async because effect
resolution may await a target prompt:

    - play_from_hand(player, card_id, preferred_targets=None) -> bool
    - use_hero_power(player, preferred_targets=None) -> bool
    - attack(player, attacker_id, target_id=None) -> bool

Each returns False, without raising, when the request is not legal in the
current state. The AI drives the game exclusively through these methods.

Example:
    >>> game = Game(seed=7)
    >>> game.setup_match()
    >>> game.begin_turn(game.player)
    >>> card = game.player.hand.cards[0]
    >>> ok = asyncio.run(game.play_from_hand(game.player, card.id))
"""

import logging
import random
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from ccg.game.combat import CombatSystem
from ccg.game.constants import (
    ALLY,
    CHARGE,
    EQUIPMENT,
    HERO_POWER_COST,
    ONE_SHOT_TYPES,
    QUEST,
    RUSH,
    STEALTH,
)
from ccg.game.decks import STARTER_HERO_POWER, starter_deck
from ccg.game.effects import EffectContext, EffectSystem, revert_temporary
from ccg.game.entities import Card, Equipment, GameStateError, Hero, Player, ensure_owner_links
from ccg.game.events import EventBus
from ccg.game.resources import ResourceSystem, TurnSystem
from ccg.game.targeting import attack_targets, auto_select_target

logger = logging.getLogger(__name__)

PromptFn = Callable[[Sequence[Any], Dict[str, Any], Player], Awaitable[Any]]


class Game:
    """
    A two-player match.

    Attributes:
        player: First player (acts first each turn)
        opponent: Second player
        turns: TurnSystem (global turn counter, active player)
        resources: ResourceSystem (pools and overload)
        combat: CombatSystem used for every attack
        effects: EffectSystem resolving card and hero power effects
        bus: EventBus for cardPlayed/attack/turnStart/... notifications
        prompt_target: Optional async callback asked for targets of human players
        log: Human-readable action log
        match_over: True once a hero has died
        winner: Winning Player, or None for a draw / unfinished match
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        prompt_target: Optional[PromptFn] = None,
        player_name: str = 'Player',
        opponent_name: str = 'Opponent',
    ):
        self.rng = random.Random(seed)
        self.turns = TurnSystem()
        self.resources = ResourceSystem(self.turns)
        self.combat = CombatSystem()
        self.bus = EventBus()
        self.effects = EffectSystem(self)
        self.prompt_target = prompt_target

        self.player = Player(player_name, hero=Hero(f"{player_name}'s hero", active=STARTER_HERO_POWER))
        self.opponent = Player(opponent_name, hero=Hero(f"{opponent_name}'s hero", active=STARTER_HERO_POWER))
        self.turns.set_active_player(self.player)

        self.log: List[str] = []
        self.match_over = False
        self.winner: Optional[Player] = None

    @classmethod
    def from_players(
        cls,
        player: Player,
        opponent: Player,
        turn: int = 1,
        pool: Optional[int] = None,
        overload_player: int = 0,
        overload_opponent: int = 0,
    ) -> "Game":
        """
        Wrap existing players in a fresh game synced to the given turn state.

        Used by the full simulator to run the real engine on cloned entities.
        """
        game = cls()
        game.player = ensure_owner_links(player)
        game.opponent = ensure_owner_links(opponent)
        game.turns.turn = turn
        game.turns.set_active_player(player)
        if pool is not None:
            game.resources.set_pool(player, pool)
        game.resources.set_pending_overload(player, overload_player)
        game.resources.set_pending_overload(opponent, overload_opponent)
        game.check_match_over()
        return game

    @property
    def players(self) -> List[Player]:
        return [self.player, self.opponent]

    def other(self, player: Player) -> Player:
        return self.opponent if player.id == self.player.id else self.player

    def _log(self, message: str) -> None:
        self.log.append(message)
        logger.debug(message)

    # ------------------------------------------------------------------
    # Setup and turn flow
    # ------------------------------------------------------------------

    def setup_match(
        self,
        player_deck: Optional[List[Card]] = None,
        opponent_deck: Optional[List[Card]] = None,
        opening_hand: int = 3,
    ) -> None:
        """Fill and shuffle both libraries, then draw opening hands."""
        for player, deck in ((self.player, player_deck), (self.opponent, opponent_deck)):
            player.library.cards = list(deck if deck is not None else starter_deck())
            player.library.shuffle(self.rng)
            ensure_owner_links(player)
            self.draw(player, opening_hand)
        self.turns.set_active_player(self.player)

    def draw(self, player: Player, n: int = 1) -> int:
        """
        Draw up to ``n`` cards. Cards drawn into a full hand are burned.

        Returns:
            Number of cards that reached the hand
        """
        if self.match_over:
            return 0
        drawn = 0
        for _ in range(n):
            card = player.library.draw()
            if card is None:
                break
            card.owner = player
            if player.hand.add(card) is None:
                player.graveyard.add(card)
                self._log(f"{player.name} burns {card.name} (hand full)")
                continue
            drawn += 1
        return drawn

    def begin_turn(self, player: Player) -> None:
        """Refresh resources, ready units and draw for ``player``'s turn."""
        self.turns.set_active_player(player)
        self.resources.start_turn(player)
        hero = player.hero
        hero.power_used = False
        hero.attacks_used = 0
        hero.attacked = False
        for card in player.battlefield.cards:
            card.attacks_used = 0
            card.attacked = False
            card.summoning_sick = False
        player.cards_played_this_turn = 0
        self.draw(player, 1)
        self.bus.emit('turnStart', {'player': player, 'turn': self.turns.turn})

    def end_turn(self) -> Player:
        """
        Finish the active player's turn and hand play to the other player.

        Freeze counters of the finishing side tick down, temporary buffs
        expire, and the turn counter advances when play returns to the
        first player.

        Returns:
            The new active player
        """
        if self.match_over:
            raise GameStateError("Cannot end turn: match is over")
        current = self.turns.active_player or self.player
        for character in current.characters():
            if character.freeze_turns > 0:
                character.freeze_turns -= 1
        for player in self.players:
            revert_temporary(player)
        self.bus.emit('turnEnd', {'player': current, 'turn': self.turns.turn})

        upcoming = self.other(current)
        if upcoming is self.player:
            self.turns.advance()
        self.turns.set_active_player(upcoming)
        return upcoming

    # ------------------------------------------------------------------
    # Legality helpers
    # ------------------------------------------------------------------

    def can_attack(self, player: Player, attacker) -> bool:
        if attacker is None or attacker.freeze_turns > 0:
            return False
        if isinstance(attacker, Hero):
            return attacker.total_attack() > 0 and attacker.attacks_used < attacker.max_attacks
        return (
            attacker.is_ally
            and attacker.is_alive
            and attacker.attack > 0
            and not attacker.summoning_sick
            and attacker.attacks_used < attacker.max_attacks
        )

    def legal_attack_targets(self, player: Player, attacker) -> List[Any]:
        """Targets ``attacker`` may hit now; Rush allies cannot go face the turn they enter."""
        can_hit_face = True
        if (
            isinstance(attacker, Card)
            and attacker.entered_turn == self.turns.turn
            and attacker.has_keyword(RUSH)
            and not attacker.has_keyword(CHARGE)
        ):
            can_hit_face = False
        return attack_targets(self.other(player), can_hit_face)

    async def choose_target(self, candidates: Sequence[Any], effect: Dict[str, Any], ctx: EffectContext):
        """
        Resolve a single target for an effect.

        Human players are prompted when a prompt is bound; a None answer
        cancels the effect. Everyone else gets auto-targeting with the
        preferred-target hint.
        """
        if not candidates:
            return None
        if self.prompt_target is not None and ctx.player.human:
            return await self.prompt_target(candidates, effect, ctx.player)
        return auto_select_target(candidates, effect, ctx.player, ctx.preferred_targets)

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    async def play_from_hand(
        self,
        player: Player,
        card_id: str,
        preferred_targets: Optional[Sequence[str]] = None,
    ) -> bool:
        """
        Pay for and play a card from ``player``'s hand.

        Args:
            player: Acting player
            card_id: Id of the card in hand
            preferred_targets: Target ids to prefer for the card's effects

        Returns:
            True if the card was played
        """
        if self.match_over:
            return False
        card = player.hand.find(card_id)
        if card is None:
            logger.debug(f"{player.name} has no card {card_id} in hand")
            return False
        if not self.resources.pay(player, card.cost):
            return False

        player.hand.remove(card)
        opponent = self.other(player)
        ctx = EffectContext(
            player=player,
            opponent=opponent,
            source=card,
            preferred_targets=list(preferred_targets or []),
        )

        if card.type == ALLY:
            card.enter_play(self.turns.turn)
            for removed in player.add_to_battlefield(card):
                self._log(f"{removed.name} is pushed off the battlefield")
        elif card.type == EQUIPMENT:
            card.owner = player
            for replaced in player.hero.equip(Equipment.from_card(card)):
                if replaced.card is not None:
                    player.graveyard.add(replaced.card)
        elif card.type == QUEST:
            player.add_to_battlefield(card)

        await self.effects.execute(card.effects, ctx)

        if card.type in ONE_SHOT_TYPES:
            card.owner = player
            player.graveyard.add(card)

        player.cards_played_this_turn += 1
        self._log(f"{player.name} plays {card.name}")
        self.bus.emit('cardPlayed', {'player': player, 'card': card, 'targets': ctx.chosen})
        self.cleanup_deaths()
        self.check_match_over()
        return True

    async def use_hero_power(
        self,
        player: Player,
        preferred_targets: Optional[Sequence[str]] = None,
    ) -> bool:
        """Activate the hero power once per turn for HERO_POWER_COST."""
        hero = player.hero
        if self.match_over or not hero.active or hero.power_used:
            return False
        if not self.resources.pay(player, HERO_POWER_COST):
            return False

        ctx = EffectContext(
            player=player,
            opponent=self.other(player),
            source=hero,
            preferred_targets=list(preferred_targets or []),
        )
        await self.effects.execute(hero.active, ctx)
        hero.power_used = True

        self._log(f"{player.name} uses hero power")
        self.bus.emit('heroPowerUsed', {'player': player, 'targets': ctx.chosen})
        self.cleanup_deaths()
        self.check_match_over()
        return True

    async def attack(self, player: Player, attacker_id: str, target_id: Optional[str] = None) -> bool:
        """
        Attack with a hero or ally.

        Args:
            player: Attacking player
            attacker_id: Id of the hero or ally attacking
            target_id: Id of the enemy hero or ally (None = enemy hero)

        Returns:
            True if the attack happened
        """
        if self.match_over:
            return False
        attacker = player.find_character(attacker_id)
        if not self.can_attack(player, attacker):
            return False

        opponent = self.other(player)
        target = opponent.hero if target_id is None else opponent.find_character(target_id)
        if target is None:
            return False
        legal_ids = {t.id for t in self.legal_attack_targets(player, attacker)}
        if target.id not in legal_ids:
            logger.debug(f"{attacker.name} cannot attack {target.name}")
            return False

        self.combat.clear()
        if not self.combat.declare_attacker(attacker, target):
            return False
        self.combat.set_defender_hero(opponent.hero)
        events = self.combat.resolve()

        attacker.attacks_used += 1
        attacker.attacked = attacker.attacks_used >= attacker.max_attacks
        attacker.remove_keyword(STEALTH)

        self._log(f"{attacker.name} attacks {target.name}")
        self.bus.emit('attack', {'player': player, 'attacker': attacker, 'target': target, 'events': events})
        self.cleanup_deaths()
        self.check_match_over()
        return True

    # ------------------------------------------------------------------
    # State checks
    # ------------------------------------------------------------------

    def cleanup_deaths(self, *players: Player) -> List[Card]:
        """Move dead allies to their graveyard. Returns the cards moved."""
        moved = []
        for player in players or self.players:
            moved.extend(player.bury_dead())
        return moved

    def check_match_over(self) -> bool:
        player_dead = self.player.hero.health <= 0
        opponent_dead = self.opponent.hero.health <= 0
        if player_dead or opponent_dead:
            if not self.match_over:
                self.match_over = True
                if player_dead and not opponent_dead:
                    self.winner = self.opponent
                elif opponent_dead and not player_dead:
                    self.winner = self.player
                self._log(f"Match over, winner: {self.winner.name if self.winner else 'none'}")
        return self.match_over
