"""
Fast state-cloning simulator used inside the search tree.

FastSimulator works on GameStateView records holding structurally cloned
players. It never touches the live game. It implements:

    - clone_state(): deep structural clone with owner links restored
    - legal_actions(): card plays (with optional hero power), hero power,
      attacks per (attacker, legal target) pair, and end
    - effects_are_useless(): prunes plays that provably do nothing
    - apply_action(): late-binding legality, effect application, terminal
      detection; stale actions resolve to a -inf terminal
    - random_playout(): weighted rollout to a fixed depth

Only the effect kinds in FAST_SIM_KINDS are simulated. Other kinds cost
their card's resources and do nothing here; the full simulator in
ccg.mcts.full_sim runs every kind through the real engine.
"""

import copy
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np

from ccg.game.combat import (
    CombatSystem,
    apply_damage,
    apply_heal,
    attack_value,
    freeze,
    note_enrage,
)
from ccg.game.constants import (
    ALLY,
    EQUIPMENT,
    HERO_POWER_COST,
    MAX_RESOURCES,
    ONE_SHOT_TYPES,
    QUEST,
    STEALTH,
)
from ccg.game.effects import (
    MULTI_TARGET_SPECS,
    EffectKind,
    apply_buff,
    target_candidates,
)
from ccg.game.entities import Card, Equipment, Hero, ensure_owner_links
from ccg.game.targeting import attack_targets, auto_select_target, is_friendly
from ccg.mcts.actions import Action, AttackDescriptor
from ccg.mcts.heuristics import TERMINAL_BONUS, choose_attack_target, evaluate_state
from ccg.mcts.signatures import action_signature
from ccg.mcts.state import GameStateView, can_hit_face

logger = logging.getLogger(__name__)

FAST_SIM_KINDS = frozenset({
    EffectKind.HEAL,
    EffectKind.DAMAGE,
    EffectKind.BUFF,
    EffectKind.SUMMON,
    EffectKind.RESTORE,
    EffectKind.OVERLOAD,
})

# Kinds that neither help nor hurt when deciding whether a play is a no-op
NEUTRAL_KINDS = frozenset({EffectKind.OVERLOAD})


@dataclass
class StepResult:
    """Outcome of applying one action to a state."""

    terminal: bool
    state: Optional[GameStateView] = None
    value: float = 0.0
    lethal: bool = False


@dataclass
class PlayoutResult:
    value: float
    lethal: bool = False


GuidanceFn = Callable[[GameStateView, List[Action]], Any]


def available_resources(turn: int) -> int:
    return min(turn, MAX_RESOURCES)


class FastSimulator:
    """
    Lightweight simulator for MCTS expansion and rollouts.

    Args:
        rng: numpy Generator used for every random choice
        rollout_depth: Maximum actions per rollout before resolving end of turn
        exploration_chance: Probability of a uniform random rollout action
        rollout_temperature: Softmax temperature over one-step value deltas
        policy_blend: Weight of the guidance policy in rollout choice
        project_opponent_response: Score ``end`` after the opponent's likely attacks

    Example:
        >>> sim = FastSimulator(rng=np.random.default_rng(0))
        >>> state = sim.clone_state(root_state)
        >>> actions = sim.legal_actions(state)
        >>> result = sim.apply_action(state, actions[0])
    """

    def __init__(
        self,
        rng: Optional[np.random.Generator] = None,
        rollout_depth: int = 4,
        exploration_chance: float = 0.1,
        rollout_temperature: float = 10.0,
        policy_blend: float = 0.5,
        project_opponent_response: bool = True,
    ):
        self.rng = rng if rng is not None else np.random.default_rng()
        self.rollout_depth = rollout_depth
        self.exploration_chance = exploration_chance
        self.rollout_temperature = rollout_temperature
        self.policy_blend = policy_blend
        self.project_opponent_response = project_opponent_response

        self.handlers: Dict[EffectKind, Callable[[GameStateView, Dict[str, Any], Any], List[Any]]] = {
            EffectKind.HEAL: self._heal,
            EffectKind.DAMAGE: self._damage,
            EffectKind.BUFF: self._buff,
            EffectKind.SUMMON: self._summon,
            EffectKind.RESTORE: self._restore,
            EffectKind.OVERLOAD: self._overload,
        }

    # ------------------------------------------------------------------
    # Cloning
    # ------------------------------------------------------------------

    def clone_state(self, base: GameStateView) -> GameStateView:
        """
        Structurally clone a state.

        Owner links are restored on both sides, the entered-this-turn set is
        recomputed from the cloned board and the guidance cache is reset.
        Libraries are shared with the base state; nothing here draws.
        """
        player = ensure_owner_links(
            copy.deepcopy(base.player, {id(base.player.library): base.player.library}),
            include_library=False,
        )
        opponent = ensure_owner_links(
            copy.deepcopy(base.opponent, {id(base.opponent.library): base.opponent.library}),
            include_library=False,
        )
        entered = {
            card.id for card in player.battlefield.cards
            if card.is_ally and card.entered_turn == base.turn
        }
        return GameStateView(
            player=player,
            opponent=opponent,
            pool=base.pool,
            turn=base.turn,
            power_available=base.power_available,
            overload_next_player=base.overload_next_player,
            overload_next_opponent=base.overload_next_opponent,
            entered_this_turn=entered,
            temp_spell_damage=base.temp_spell_damage,
            base_hero_spell_damage=base.base_hero_spell_damage,
            enraged_player_this_turn=dict(base.enraged_player_this_turn),
            enraged_opponent_this_turn=dict(base.enraged_opponent_this_turn),
        )

    # ------------------------------------------------------------------
    # Legal actions
    # ------------------------------------------------------------------

    def legal_actions(self, state: GameStateView) -> List[Action]:
        """
        Enumerate the actions available to ``state.player``.

        ``end`` is always last and always present.
        """
        player = state.player
        actions = []
        power_ok = self._power_playable(state)

        for card in player.hand.cards:
            if card.cost > state.pool:
                continue
            if card.effects and self.effects_are_useless(card.effects, state, source=card):
                continue
            actions.append(Action(card=card))
            if power_ok and state.pool - card.cost >= HERO_POWER_COST:
                actions.append(Action(card=card, use_power=True))

        if power_ok:
            actions.append(Action(use_power=True))

        actions.extend(self.attack_actions(state))
        actions.append(Action.end_turn())
        return actions

    def _power_playable(self, state: GameStateView) -> bool:
        hero = state.player.hero
        if not state.power_available or not hero.active or hero.power_used:
            return False
        if state.pool < HERO_POWER_COST:
            return False
        return not self.effects_are_useless(hero.active, state)

    def can_attack(self, attacker, state: GameStateView) -> bool:
        if attacker is None or attacker.freeze_turns > 0 or not attacker.is_alive:
            return False
        if attacker.attacks_used >= attacker.max_attacks:
            return False
        if isinstance(attacker, Hero):
            return attacker.total_attack() > 0
        return attacker.is_ally and attacker.attack > 0 and not attacker.summoning_sick

    def attack_actions(self, state: GameStateView) -> List[Action]:
        """One attack action per eligible attacker and legal target."""
        player, opponent = state.player, state.opponent
        actions = []
        for attacker in [player.hero] + player.allies():
            if not self.can_attack(attacker, state):
                continue
            is_hero = isinstance(attacker, Hero)
            face_ok = is_hero or can_hit_face(attacker, state)
            for target in attack_targets(opponent, face_ok):
                actions.append(Action(attack=AttackDescriptor(
                    attacker_id=attacker.id,
                    target_id=target.id,
                    attacker_type='hero' if is_hero else 'ally',
                    target_type='hero' if isinstance(target, Hero) else 'ally',
                )))
        return actions

    def effects_are_useless(self, effects, state: GameStateView, source=None) -> bool:
        """
        True when every non-neutral effect in the list provably does nothing.

        Kinds the simulator cannot judge count as useful.
        """
        if not effects:
            return False
        saw_useless = False
        for effect in effects:
            kind = EffectKind.of(effect)
            if kind in NEUTRAL_KINDS:
                continue
            if self._effect_is_useless(effect, kind, state, source):
                saw_useless = True
                continue
            return False
        return saw_useless

    def _effect_is_useless(self, effect, kind, state: GameStateView, source) -> bool:
        player, opponent = state.player, state.opponent

        if kind == EffectKind.HEAL:
            spec = effect.get('target', 'character')
            candidates = [player.hero] if spec in ('hero', 'self') else player.characters()
            return not any(c.health < c.max_health for c in candidates)

        if kind == EffectKind.RESTORE:
            spent = available_resources(state.turn) - state.pool
            required = effect.get('requiresSpent', 0) or 0
            return spent <= 0 or spent < required

        if kind == EffectKind.BUFF:
            prop = effect.get('property', 'attack')
            amount = effect.get('amount', 0) or 0
            if prop == 'armor' and amount < 0:
                return not any(c.armor > 0 for c in opponent.characters())
            if prop == 'spellDamage' and effect.get('duration') == 'thisTurn':
                return not self._has_damage_follow_up(state, source)

        return False

    def _has_damage_follow_up(self, state: GameStateView, source) -> bool:
        """Whether a damage spell or power can still use a temporary spell-damage buff."""
        player = state.player
        if isinstance(source, Card):
            remaining = state.pool - source.cost
        else:
            remaining = state.pool - HERO_POWER_COST
        for card in player.hand.cards:
            if source is not None and card.id == getattr(source, 'id', None):
                continue
            if card.type not in ONE_SHOT_TYPES or card.cost > remaining:
                continue
            if any(EffectKind.of(e) == EffectKind.DAMAGE for e in card.effects):
                return True
        hero = player.hero
        if isinstance(source, Card) and state.power_available and remaining >= HERO_POWER_COST:
            if any(EffectKind.of(e) == EffectKind.DAMAGE for e in hero.active):
                return True
        return False

    # ------------------------------------------------------------------
    # Applying actions
    # ------------------------------------------------------------------

    def apply_action(self, state: GameStateView, action: Action) -> StepResult:
        """
        Apply ``action`` to a clone of ``state``.

        Legality is re-checked against the clone; an action that no longer
        applies yields a terminal -inf result instead of raising.

        Returns:
            StepResult with the new state, or terminal value and lethal flag
        """
        s = self.clone_state(state)
        action.target_signature = None
        action.resolved_targets = []
        player, opponent = s.player, s.opponent

        if action.end:
            value, lethal = self.resolve_end(s)
            return StepResult(terminal=True, value=value, lethal=lethal)

        if action.attack is not None:
            if not self.execute_attack_action(s, action):
                return self._illegal(action)
        else:
            if action.card is not None:
                card = player.hand.find(action.card.id)
                if card is None or card.cost > s.pool:
                    return self._illegal(action)
                self._play_card(s, card, action)
            if action.use_power:
                hero = player.hero
                if not s.power_available or not hero.active or hero.power_used or s.pool < HERO_POWER_COST:
                    return self._illegal(action)
                s.pool -= HERO_POWER_COST
                s.power_available = False
                hero.power_used = True
                self._apply_effects(s, hero.active, action, source=hero)

        self._bury(s)
        if player.hero.health <= 0 or opponent.hero.health <= 0:
            lethal = opponent.hero.health <= 0 and player.hero.health > 0
            return StepResult(terminal=True, value=evaluate_state(s), lethal=lethal)
        return StepResult(terminal=False, state=s)

    def _illegal(self, action: Action) -> StepResult:
        logger.debug(f"Stale action in simulation: {action.describe()}")
        return StepResult(terminal=True, value=float('-inf'))

    def _play_card(self, s: GameStateView, card: Card, action: Action) -> None:
        player = s.player
        s.pool -= card.cost
        player.hand.remove(card)

        if card.type == ALLY:
            card.enter_play(s.turn)
            player.add_to_battlefield(card)
            s.entered_this_turn.add(card.id)
        elif card.type == EQUIPMENT:
            card.owner = player
            equipment = Equipment.from_card(card)
            s.base_hero_spell_damage += equipment.spell_damage
            for replaced in player.hero.equip(equipment):
                s.base_hero_spell_damage -= replaced.spell_damage
                if replaced.card is not None:
                    player.graveyard.add(replaced.card)
        elif card.type == QUEST:
            player.add_to_battlefield(card)

        self._apply_effects(s, card.effects, action, source=card)

        if card.type in ONE_SHOT_TYPES:
            card.owner = player
            player.graveyard.add(card)
        player.cards_played_this_turn += 1

    def _apply_effects(self, s: GameStateView, effects, action: Action, source) -> None:
        tags = []
        for effect in effects or ():
            kind = EffectKind.of(effect)
            handler = self.handlers.get(kind)
            if handler is None:
                continue
            for target in handler(s, effect, source) or ():
                action.resolved_targets.append(target.id)
                tags.append(f"{kind.value}:{target.id}")
        if tags:
            action.target_signature = ','.join(tags)

    def _bury(self, s: GameStateView) -> None:
        s.player.bury_dead()
        s.opponent.bury_dead()
        for tracked, side in ((s.enraged_player_this_turn, s.player),
                              (s.enraged_opponent_this_turn, s.opponent)):
            alive = {c.id for c in side.allies()}
            for card_id in [cid for cid in tracked if cid not in alive]:
                del tracked[card_id]

    def _track_enrage(self, s: GameStateView, card) -> None:
        if not isinstance(card, Card) or not note_enrage(card):
            return
        tracked = s.enraged_opponent_this_turn if card.owner is s.opponent else s.enraged_player_this_turn
        tracked[card.id] = tracked.get(card.id, 0) + 1

    def _spell_bonus(self, s: GameStateView) -> int:
        """Same bonus the live engine adds to spell damage."""
        return s.player.spell_damage_bonus()

    # ------------------------------------------------------------------
    # Effect handlers (subset of EffectKind)
    # ------------------------------------------------------------------

    def _heal(self, s, effect, source) -> List[Any]:
        spec = effect.get('target', 'character')
        amount = effect.get('amount', 0) or 0
        candidates = target_candidates(spec, s.player, s.opponent)
        if spec in MULTI_TARGET_SPECS:
            for target in candidates:
                apply_heal(target, amount)
            return []
        target = auto_select_target(candidates, effect, s.player)
        if target is None:
            return []
        apply_heal(target, amount)
        return [target]

    def _deal(self, s, target, amount: int, effect) -> None:
        dealt = apply_damage(target, amount)
        self._track_enrage(s, target)
        if effect.get('freeze') and dealt > 0:
            freeze(target)

    def _damage(self, s, effect, source) -> List[Any]:
        amount = effect.get('amount', 0) or 0
        if isinstance(source, Card) and source.type in ONE_SHOT_TYPES:
            amount += self._spell_bonus(s)
        spec = effect.get('target', 'any')
        candidates = target_candidates(spec, s.player, s.opponent)

        if spec in MULTI_TARGET_SPECS:
            for target in candidates:
                self._deal(s, target, amount, effect)
            return []

        hostile = [c for c in candidates if not is_friendly(c, s.player)]
        candidates = hostile or candidates
        if not candidates:
            return []
        if len(candidates) == 1:
            target = candidates[0]
        else:
            target = self._best_damage_target(s, candidates, amount, effect)
        self._deal(s, target, amount, effect)
        return [target]

    def _best_damage_target(self, s, candidates, amount: int, effect):
        """Greedy one-ply lookahead: the target whose damaged board scores best."""
        best, best_value = candidates[0], float('-inf')
        for candidate in candidates:
            trial = self.clone_state(s)
            target = trial.opponent.find_character(candidate.id) or trial.player.find_character(candidate.id)
            if target is None:
                continue
            self._deal(trial, target, amount, effect)
            self._bury(trial)
            value = evaluate_state(trial)
            if value > best_value:
                best, best_value = candidate, value
        return best

    def _buff(self, s, effect, source) -> List[Any]:
        spec = effect.get('target', 'character')
        candidates = target_candidates(spec, s.player, s.opponent)
        if spec in MULTI_TARGET_SPECS:
            chosen = []
            targets = candidates
        else:
            target = auto_select_target(candidates, effect, s.player)
            if target is None:
                return []
            chosen = [target]
            targets = chosen

        for target in targets:
            apply_buff(target, effect)
            if target is s.player.hero and effect.get('property') == 'spellDamage':
                amount = effect.get('amount', 0) or 0
                if effect.get('duration') == 'thisTurn':
                    s.temp_spell_damage += amount
                else:
                    s.base_hero_spell_damage += amount
        return chosen

    def _summon(self, s, effect, source) -> List[Any]:
        unit = dict(effect.get('unit') or {})
        unit['type'] = ALLY
        unit.pop('id', None)
        for _ in range(effect.get('count', 1) or 1):
            token = Card.from_dict(unit)
            token.enter_play(s.turn)
            s.player.add_to_battlefield(token)
            s.entered_this_turn.add(token.id)
        return []

    def _restore(self, s, effect, source) -> List[Any]:
        s.pool = min(available_resources(s.turn), s.pool + (effect.get('amount', 0) or 0))
        return []

    def _overload(self, s, effect, source) -> List[Any]:
        s.overload_next_player += effect.get('amount', 0) or 0
        return []

    # ------------------------------------------------------------------
    # Attacks and end of turn
    # ------------------------------------------------------------------

    def execute_attack_action(self, s: GameStateView, action: Action) -> bool:
        """Resolve an attack action on ``s`` in place. False if it is no longer legal."""
        desc = action.attack
        player, opponent = s.player, s.opponent
        if desc.attacker_type == 'hero':
            attacker = player.hero if player.hero.id == desc.attacker_id else None
        else:
            attacker = player.battlefield.find(desc.attacker_id)
        if not self.can_attack(attacker, s):
            return False

        face_ok = isinstance(attacker, Hero) or can_hit_face(attacker, s)
        legal = attack_targets(opponent, face_ok)
        target = next((t for t in legal if t.id == desc.target_id), None)
        if target is None:
            return False
        return self._strike(s, attacker, target, opponent)

    def _strike(self, s: GameStateView, attacker, target, defender) -> bool:
        combat = CombatSystem()
        if not combat.declare_attacker(attacker, target):
            return False
        combat.set_defender_hero(defender.hero)
        events = combat.resolve()

        attacker.attacks_used += 1
        attacker.attacked = attacker.attacks_used >= attacker.max_attacks
        attacker.remove_keyword(STEALTH)

        for event in events:
            self._track_enrage(s, event.target)
        self._bury(s)
        return True

    def run_attack_phase(self, s: GameStateView) -> None:
        """Attack with every still-eligible unit using the basic target heuristic."""
        player, opponent = s.player, s.opponent
        for attacker in [player.hero] + player.allies():
            while self.can_attack(attacker, s) and opponent.hero.health > 0:
                face_ok = isinstance(attacker, Hero) or can_hit_face(attacker, s)
                legal = attack_targets(opponent, face_ok)
                target = choose_attack_target(attacker, attack_value(attacker), legal, opponent.hero)
                if target is None or not self._strike(s, attacker, target, opponent):
                    break

    def project_response(self, s: GameStateView) -> None:
        """Let the opponent's ready allies attack back with the same heuristic."""
        player, opponent = s.player, s.opponent
        for enemy in list(opponent.allies()):
            if enemy.attack <= 0 or enemy.freeze_turns > 0:
                continue
            for _ in range(enemy.max_attacks):
                if not enemy.is_alive or player.hero.health <= 0:
                    break
                legal = attack_targets(player)
                target = choose_attack_target(enemy, enemy.attack, legal, player.hero)
                if target is None:
                    break
                combat = CombatSystem()
                combat.declare_attacker(enemy, target)
                combat.set_defender_hero(player.hero)
                for event in combat.resolve():
                    self._track_enrage(s, event.target)
                self._bury(s)

    def resolve_end(self, s: GameStateView) -> Tuple[float, bool]:
        """
        Score the end of the turn on ``s`` (mutated in place).

        Returns:
            (value, lethal) where lethal means the enemy hero died
        """
        self.run_attack_phase(s)
        if s.opponent.hero.health <= 0:
            return evaluate_state(s), s.player.hero.health > 0
        if self.project_opponent_response:
            self.project_response(s)
        return evaluate_state(s), False

    # ------------------------------------------------------------------
    # Rollouts
    # ------------------------------------------------------------------

    def random_playout(self, state: GameStateView, guidance_fn: Optional[GuidanceFn] = None) -> PlayoutResult:
        """
        Roll out from ``state`` up to ``rollout_depth`` actions.

        Returns:
            PlayoutResult with the terminal (or end-of-turn) value
        """
        current = state
        for _ in range(self.rollout_depth):
            actions = self.legal_actions(current)
            guidance = guidance_fn(current, actions) if guidance_fn is not None else None
            action = self.pick_rollout_action(current, actions, guidance)
            result = self.apply_action(current, action)
            if result.terminal:
                return PlayoutResult(value=result.value, lethal=result.lethal)
            current = result.state

        value, lethal = self.resolve_end(self.clone_state(current))
        return PlayoutResult(value=value, lethal=lethal)

    def pick_rollout_action(self, state: GameStateView, actions: List[Action], guidance=None) -> Action:
        """
        Choose a rollout action.

        Non-end actions are preferred. With probability exploration_chance
        the choice is uniform; otherwise it is a softmax over one-step value
        deltas, blended with the guidance policy when present.
        """
        candidates = [a for a in actions if not a.end]
        if not candidates:
            return actions[-1]
        if len(candidates) == 1:
            return candidates[0]
        if self.rng.random() < self.exploration_chance:
            return candidates[int(self.rng.integers(len(candidates)))]

        signatures = [action_signature(a) for a in candidates]
        if guidance is not None:
            baseline = guidance.state_value
            values = [guidance.action_values.get(sig, baseline) for sig in signatures]
        else:
            baseline = evaluate_state(state)
            values = [self._one_step_value(state, a, baseline) for a in candidates]

        deltas = np.asarray(values, dtype=np.float64) - baseline
        logits = deltas / max(self.rollout_temperature, 1e-6)
        weights = np.exp(logits - logits.max())
        probs = weights / weights.sum()

        if guidance is not None and guidance.policy:
            prior = np.asarray([guidance.policy.get(sig, 0.0) for sig in signatures], dtype=np.float64)
            if prior.sum() > 0:
                prior = prior / prior.sum()
                probs = (1.0 - self.policy_blend) * probs + self.policy_blend * prior

        return candidates[int(self.rng.choice(len(candidates), p=probs))]

    def _one_step_value(self, state: GameStateView, action: Action, baseline: float) -> float:
        result = self.apply_action(state, action)
        value = result.value if result.terminal else evaluate_state(result.state)
        if not math.isfinite(value):
            return baseline - TERMINAL_BONUS
        return value
