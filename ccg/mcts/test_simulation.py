"""
Tests for the fast simulator, heuristics and state signatures.

Tests cover:
- Legal action enumeration (plays, hero power, attacks, end)
- No-op filtering of useless plays
- Late-binding legality of stale actions
- Effect application, lethal detection and damage target lookahead
- End-of-turn resolution and opponent projection
- Fingerprints and action signatures
"""

import asyncio
import math

import numpy as np
import pytest

from ccg.game.engine import Game
from ccg.game.entities import Card
from ccg.mcts.actions import Action
from ccg.mcts.heuristics import (
    TERMINAL_BONUS,
    choose_attack_target,
    evaluate_game_state,
    trade_score,
)
from ccg.mcts.signatures import action_signature, card_signature, fingerprint
from ccg.mcts.simulation import FAST_SIM_KINDS, FastSimulator
from ccg.mcts.state import state_from_live


def make_game(turn=5):
    game = Game(seed=3)
    game.turns.turn = turn
    return game


def give(player, data):
    card = Card.from_dict(data)
    card.owner = player
    player.hand.add(card)
    return card


def put_on_board(game, player, data, entered_now=False):
    card = Card.from_dict(data)
    card.enter_play(game.turns.turn if entered_now else game.turns.turn - 1)
    if not entered_now:
        card.summoning_sick = False
    player.add_to_battlefield(card)
    return card


def view(game):
    return state_from_live(game, game.player, game.opponent)


def make_sim(**kwargs):
    return FastSimulator(rng=np.random.default_rng(0), **kwargs)


def run(coro):
    return asyncio.run(coro)


FOCUS = {'name': 'Arcane Focus', 'type': 'spell', 'cost': 1,
         'effects': [{'type': 'buff', 'target': 'hero', 'property': 'spellDamage',
                      'amount': 1, 'duration': 'thisTurn'}]}
SIGNET = {'name': 'Signet', 'type': 'spell', 'cost': 1,
          'effects': [{'type': 'buff', 'target': 'hero', 'property': 'spellDamage', 'amount': 2}]}
BOLT = {'name': 'Bolt', 'type': 'spell', 'cost': 1,
        'effects': [{'type': 'damage', 'target': 'enemyHero', 'amount': 2}]}


FOOTMAN = {'name': 'Footman', 'cost': 1, 'attack': 1, 'health': 2}
ZAP = {'name': 'Zap', 'type': 'spell', 'cost': 1,
       'effects': [{'type': 'damage', 'target': 'any', 'amount': 2}]}
POTION = {'name': 'Healing Potion', 'type': 'consumable', 'cost': 1,
          'effects': [{'type': 'heal', 'target': 'character', 'amount': 5}]}


class TestLegalActions:
    """Test legal action enumeration."""

    def test_end_is_always_last(self):
        """Test an empty turn still offers end, and only end."""
        game = make_game()
        game.player.hero.active = []
        actions = make_sim().legal_actions(view(game))

        assert len(actions) == 1
        assert actions[0].end

    def test_card_and_power_combinations(self):
        """Test a cheap card is offered alone, with the hero power, and the power alone."""
        game = make_game()
        give(game.player, FOOTMAN)
        actions = make_sim().legal_actions(view(game))

        described = [a.describe() for a in actions]
        assert described == ['play Footman', 'play Footman + hero power', 'hero power', 'end turn']

    def test_unaffordable_card_excluded(self):
        """Test cards costing more than the pool are not offered."""
        game = make_game(turn=2)
        give(game.player, {'name': 'Ogre', 'cost': 4, 'attack': 4, 'health': 5})
        actions = make_sim().legal_actions(view(game))

        assert not any(a.card is not None for a in actions)

    def test_power_needs_two_resources(self):
        """Test the hero power is not offered with a pool below its cost."""
        game = make_game(turn=1)
        actions = make_sim().legal_actions(view(game))

        assert not any(a.use_power for a in actions)

    def test_one_attack_per_target(self):
        """Test a ready ally gets one attack action per legal target."""
        game = make_game()
        game.player.hero.active = []
        knight = put_on_board(game, game.player, {'name': 'Knight', 'attack': 3, 'health': 3})
        footman = put_on_board(game, game.opponent, FOOTMAN)
        attacks = [a for a in make_sim().legal_actions(view(game)) if a.is_attack]

        targets = sorted(a.attack.target_id for a in attacks)
        assert len(attacks) == 2
        assert all(a.attack.attacker_id == knight.id for a in attacks)
        assert targets == sorted([footman.id, game.opponent.hero.id])

    def test_taunt_restricts_targets(self):
        """Test only Taunt allies can be attacked while one stands."""
        game = make_game()
        put_on_board(game, game.player, {'name': 'Knight', 'attack': 3, 'health': 3})
        wall = put_on_board(game, game.opponent, {'name': 'Wall', 'attack': 0, 'health': 5,
                                                 'keywords': ['Taunt']})
        put_on_board(game, game.opponent, FOOTMAN)
        attacks = [a for a in make_sim().legal_actions(view(game)) if a.is_attack]

        assert [a.attack.target_id for a in attacks] == [wall.id]

    def test_rush_cannot_attack_face_on_entry(self):
        """Test a Rush ally that entered this turn only gets ally targets."""
        game = make_game()
        rider = put_on_board(game, game.player, {'name': 'Wolf Rider', 'attack': 3, 'health': 1,
                                                 'keywords': ['Rush']}, entered_now=True)
        sim = make_sim()

        attacks = [a for a in sim.legal_actions(view(game)) if a.is_attack]
        assert attacks == []

        footman = put_on_board(game, game.opponent, FOOTMAN)
        attacks = [a for a in sim.legal_actions(view(game)) if a.is_attack]
        assert [(a.attack.attacker_id, a.attack.target_id) for a in attacks] == [(rider.id, footman.id)]

    def test_summoning_sick_ally_has_no_attacks(self):
        """Test an ally without Rush or Charge cannot attack the turn it enters."""
        game = make_game()
        put_on_board(game, game.player, {'name': 'Knight', 'attack': 3, 'health': 3}, entered_now=True)

        assert not any(a.is_attack for a in make_sim().legal_actions(view(game)))


class TestUselessFilter:
    """Test pruning of plays that provably do nothing."""

    def test_heal_at_full_health_is_pruned(self):
        """Test a heal with no injured friendly character is not offered."""
        game = make_game()
        game.player.hero.active = []
        give(game.player, POTION)
        actions = make_sim().legal_actions(view(game))

        assert [a.describe() for a in actions] == ['end turn']

    def test_heal_when_injured_is_kept(self):
        """Test the same heal is offered once the hero is injured."""
        game = make_game()
        game.player.hero.active = []
        game.player.hero.health = 20
        give(game.player, POTION)
        actions = make_sim().legal_actions(view(game))

        assert actions[0].describe() == 'play Healing Potion'

    def test_restore_with_nothing_spent_is_pruned(self):
        """Test restore plus overload counts as useless before resources are spent."""
        game = make_game()
        game.player.hero.active = []
        give(game.player, {'name': 'Mana Potion', 'type': 'consumable', 'cost': 0,
                           'effects': [{'type': 'restore', 'amount': 2, 'requiresSpent': 2},
                                       {'type': 'overload', 'amount': 1}]})
        state = view(game)
        sim = make_sim()

        assert [a.describe() for a in sim.legal_actions(state)] == ['end turn']

        state.pool = 2
        assert sim.legal_actions(state)[0].describe() == 'play Mana Potion'

    def test_armor_removal_without_armor_is_pruned(self):
        """Test a negative armor buff is useless when no enemy has armor."""
        game = make_game()
        card = Card.from_dict({'name': 'Sunder', 'type': 'spell', 'cost': 1,
                               'effects': [{'type': 'buff', 'target': 'character',
                                            'property': 'armor', 'amount': -3}]})
        sim = make_sim()
        state = view(game)

        assert sim.effects_are_useless(card.effects, state, source=card)
        game.opponent.hero.armor = 2
        assert not sim.effects_are_useless(card.effects, state, source=card)

    def test_temporary_spell_damage_needs_follow_up(self):
        """Test a this-turn spell damage buff is kept only when a damage spell can follow."""
        game = make_game()
        game.player.hero.active = []
        give(game.player, FOCUS)
        sim = make_sim()

        assert [a.describe() for a in sim.legal_actions(view(game))] == ['end turn']

        give(game.player, ZAP)
        state = view(game)
        assert 'play Arcane Focus' in [a.describe() for a in sim.legal_actions(state)]

        state.pool = 1
        assert 'play Arcane Focus' not in [a.describe() for a in sim.legal_actions(state)]

    def test_unknown_kinds_count_as_useful(self):
        """Test effect kinds the simulator cannot judge are never pruned."""
        game = make_game()
        effects = [{'type': 'draw', 'count': 1}]

        assert not make_sim().effects_are_useless(effects, view(game))


class TestApplyAction:
    """Test applying actions to cloned states."""

    def test_every_simulated_kind_has_a_handler(self):
        """Test the handler table covers exactly the simulated effect kinds."""
        assert set(make_sim().handlers) == FAST_SIM_KINDS

    def test_apply_does_not_touch_input_state(self):
        """Test playing a card mutates only the clone."""
        game = make_game()
        footman = give(game.player, FOOTMAN)
        state = view(game)
        result = make_sim().apply_action(state, Action(card=footman))

        assert not result.terminal
        assert result.state.pool == 4
        assert len(result.state.player.battlefield) == 1
        assert footman in game.player.hand.cards
        assert state.pool == 5

    def test_stale_action_is_negative_infinity(self):
        """Test a card no longer in hand yields a terminal -inf result."""
        game = make_game()
        ghost = Card.from_dict(FOOTMAN)
        result = make_sim().apply_action(view(game), Action(card=ghost))

        assert result.terminal
        assert result.value == float('-inf')

    def test_stale_attack_is_negative_infinity(self):
        """Test an attack by a missing attacker yields -inf."""
        game = make_game()
        knight = put_on_board(game, game.player, {'name': 'Knight', 'attack': 3, 'health': 3})
        sim = make_sim()
        state = view(game)
        attack = next(a for a in sim.legal_actions(state) if a.is_attack)
        game.player.battlefield.remove(knight)

        result = sim.apply_action(view(game), attack)
        assert result.terminal
        assert math.isinf(result.value) and result.value < 0

    def test_lethal_spell_is_terminal(self):
        """Test damage that kills the enemy hero ends the search branch as lethal."""
        game = make_game()
        game.opponent.hero.health = 2
        zap = give(game.player, ZAP)
        result = make_sim().apply_action(view(game), Action(card=zap))

        assert result.terminal
        assert result.lethal
        assert result.value > TERMINAL_BONUS / 2

    def test_damage_lookahead_prefers_valuable_kill(self):
        """Test damage goes to the enemy ally whose death scores best."""
        game = make_game()
        brute = put_on_board(game, game.opponent, {'name': 'Brute', 'attack': 4, 'health': 2})
        zap = give(game.player, ZAP)
        action = Action(card=zap)
        result = make_sim().apply_action(view(game), action)

        assert action.resolved_targets == [brute.id]
        assert action.target_signature == f"damage:{brute.id}"
        assert len(result.state.opponent.battlefield) == 0
        assert result.state.opponent.hero.health == 30

    def test_damage_lookahead_goes_face_over_cheap_kill(self):
        """Test two face damage beats killing a 2/1."""
        game = make_game()
        put_on_board(game, game.opponent, {'name': 'Squire', 'attack': 2, 'health': 1})
        zap = give(game.player, ZAP)
        result = make_sim().apply_action(view(game), Action(card=zap))

        assert result.state.opponent.hero.health == 28

    def test_overload_accumulates(self):
        """Test overload effects add to the pending overload."""
        game = make_game()
        bolt = give(game.player, {'name': 'Lightning Bolt', 'type': 'spell', 'cost': 1,
                                  'effects': [{'type': 'damage', 'target': 'any', 'amount': 3},
                                              {'type': 'overload', 'amount': 1}]})
        state = view(game)
        state.overload_next_player = 1
        result = make_sim().apply_action(state, Action(card=bolt))

        assert result.state.overload_next_player == 2

    def test_card_with_power(self):
        """Test a combined action pays for both and marks the power used."""
        game = make_game()
        footman = give(game.player, FOOTMAN)
        result = make_sim().apply_action(view(game), Action(card=footman, use_power=True))

        assert result.state.pool == 2
        assert not result.state.power_available
        assert result.state.opponent.hero.health == 29

    def test_summon_tokens_enter_this_turn(self):
        """Test summoned tokens are on board and tracked as entered."""
        game = make_game()
        pack = give(game.player, {'name': 'Call the Pack', 'type': 'spell', 'cost': 3,
                                  'effects': [{'type': 'summon', 'count': 2,
                                               'unit': {'name': 'Wolf', 'attack': 1, 'health': 1}}]})
        result = make_sim().apply_action(view(game), Action(card=pack))

        wolves = result.state.player.allies()
        assert [w.name for w in wolves] == ['Wolf', 'Wolf']
        assert {w.id for w in wolves} <= result.state.entered_this_turn

    def test_permanent_spell_damage_matches_engine(self):
        """Test a permanent hero spell damage buff boosts later spells like the live engine."""
        games = [make_game(), make_game()]
        for game in games:
            game.player.hero.active = []
            give(game.player, SIGNET)
            give(game.player, BOLT)

        sim_game, live_game = games
        sim = make_sim()
        signet, bolt = sim_game.player.hand.cards
        first = sim.apply_action(view(sim_game), Action(card=signet))
        second = sim.apply_action(first.state, Action(card=bolt))

        for card in list(live_game.player.hand.cards):
            assert run(live_game.play_from_hand(live_game.player, card.id))

        assert first.state.base_hero_spell_damage == 2
        assert second.state.opponent.hero.health == 26
        assert live_game.opponent.hero.health == 26
        assert fingerprint(second.state) == fingerprint(view(live_game))

    def test_enrage_is_tracked_and_cleared(self):
        """Test damaging an enrage ally counts a trigger and its death clears it."""
        game = make_game()
        berserker = put_on_board(game, game.opponent, {'name': 'Berserker', 'attack': 2,
                                                      'health': 4, 'enrage': 3})
        sting = give(game.player, {'name': 'Sting', 'type': 'spell', 'cost': 1,
                                   'effects': [{'type': 'damage', 'target': 'enemyAlly', 'amount': 1}]})
        blast = give(game.player, {'name': 'Blast', 'type': 'spell', 'cost': 1,
                                   'effects': [{'type': 'damage', 'target': 'enemyAlly', 'amount': 5}]})
        sim = make_sim()

        stung = sim.apply_action(view(game), Action(card=sting))
        assert stung.state.enraged_opponent_this_turn == {berserker.id: 1}
        assert stung.state.opponent.allies()[0].attack == 5

        blasted = sim.apply_action(stung.state, Action(card=blast))
        assert blasted.state.opponent.allies() == []
        assert blasted.state.enraged_opponent_this_turn == {}


class TestEndOfTurn:
    """Test resolution of the end action."""

    def test_end_runs_attack_phase(self):
        """Test unused attacks are spent by the heuristic attack phase."""
        game = make_game()
        game.player.hero.active = []
        put_on_board(game, game.player, {'name': 'Knight', 'attack': 3, 'health': 3})
        state = make_sim().clone_state(view(game))
        value, lethal = make_sim().resolve_end(state)

        assert not lethal
        assert state.opponent.hero.health == 27

    def test_end_lethal_through_attacks(self):
        """Test the attack phase can find lethal."""
        game = make_game()
        game.opponent.hero.health = 3
        put_on_board(game, game.player, {'name': 'Knight', 'attack': 3, 'health': 3})
        result = make_sim().apply_action(view(game), Action.end_turn())

        assert result.terminal
        assert result.lethal

    def test_opponent_projection(self):
        """Test the opponent's ready allies hit back when projection is on."""
        game = make_game()
        put_on_board(game, game.opponent, {'name': 'Brute', 'attack': 5, 'health': 2})

        projected = make_sim().clone_state(view(game))
        make_sim().resolve_end(projected)
        assert projected.player.hero.health == 25

        plain = make_sim(project_opponent_response=False).clone_state(view(game))
        make_sim(project_opponent_response=False).resolve_end(plain)
        assert plain.player.hero.health == 30


class TestRollouts:
    """Test rollouts and rollout action choice."""

    def test_playout_is_deterministic_under_seed(self):
        """Test equal seeds give equal playout values."""
        game = make_game()
        give(game.player, FOOTMAN)
        give(game.player, ZAP)
        put_on_board(game, game.opponent, {'name': 'Brute', 'attack': 4, 'health': 2})
        state = view(game)

        first = FastSimulator(rng=np.random.default_rng(11)).random_playout(state)
        second = FastSimulator(rng=np.random.default_rng(11)).random_playout(state)

        assert first.value == second.value
        assert math.isfinite(first.value)

    def test_rollout_prefers_non_end(self):
        """Test end is only picked when nothing else is legal."""
        game = make_game()
        give(game.player, FOOTMAN)
        state = view(game)
        sim = make_sim(exploration_chance=0.0)
        actions = sim.legal_actions(state)

        for _ in range(10):
            assert not sim.pick_rollout_action(state, actions).end
        assert sim.pick_rollout_action(state, [Action.end_turn()]).end


class TestHeuristics:
    """Test the evaluator and attack target scoring."""

    def test_symmetric_board_scores_turn_only(self):
        """Test an even board scores only the turn and resource terms."""
        game = make_game()
        score = evaluate_game_state(game.player, game.opponent, turn=5, resources=0)

        assert score == pytest.approx(0.5)

    def test_hero_death_is_dominant(self):
        """Test a dead enemy hero adds the terminal bonus."""
        game = make_game()
        game.opponent.hero.health = 0

        assert evaluate_game_state(game.player, game.opponent) > TERMINAL_BONUS

    def test_enrage_penalty(self):
        """Test triggered enemy enrage lowers the score."""
        game = make_game()
        berserker = put_on_board(game, game.opponent, {'name': 'Berserker', 'attack': 2,
                                                      'health': 4, 'enrage': 3})
        base = evaluate_game_state(game.player, game.opponent)
        penalized = evaluate_game_state(game.player, game.opponent,
                                        enraged_opponent_this_turn={berserker.id: 1})

        assert base - penalized == pytest.approx(20 + 8 * 3)

    def test_trade_beats_face(self):
        """Test a 2/2 prefers trading into a 5/2 over two face damage."""
        game = make_game()
        archer = put_on_board(game, game.player, {'name': 'Archer', 'attack': 2, 'health': 2})
        brute = put_on_board(game, game.opponent, {'name': 'Brute', 'attack': 5, 'health': 2})

        assert trade_score(archer, 2, brute) == pytest.approx(29.5)
        target = choose_attack_target(archer, 2, [brute, game.opponent.hero], game.opponent.hero)
        assert target is brute

    def test_lethal_face_first(self):
        """Test lethal on the hero beats any trade."""
        game = make_game()
        game.opponent.hero.health = 2
        archer = put_on_board(game, game.player, {'name': 'Archer', 'attack': 2, 'health': 2})
        brute = put_on_board(game, game.opponent, {'name': 'Brute', 'attack': 5, 'health': 2})

        target = choose_attack_target(archer, 2, [brute, game.opponent.hero], game.opponent.hero)
        assert target is game.opponent.hero


class TestSignatures:
    """Test fingerprints and action signatures."""

    def test_clone_has_same_fingerprint(self):
        """Test a structural clone fingerprints equal to its source."""
        game = make_game()
        give(game.player, FOOTMAN)
        put_on_board(game, game.opponent, FOOTMAN)
        state = view(game)

        assert fingerprint(make_sim().clone_state(state)) == fingerprint(state)

    def test_fingerprint_ignores_ids(self):
        """Test equal boards with different entity ids fingerprint equal."""
        first, second = make_game(), make_game()
        give(first.player, FOOTMAN)
        give(second.player, FOOTMAN)

        assert fingerprint(view(first)) == fingerprint(view(second))

    def test_fingerprint_sees_changes(self):
        """Test health, pool and zone order changes alter the fingerprint."""
        game = make_game()
        give(game.player, FOOTMAN)
        give(game.player, ZAP)
        state = view(game)
        before = fingerprint(state)

        game.opponent.hero.health -= 1
        assert fingerprint(view(game)) != before
        game.opponent.hero.health += 1

        state.pool -= 1
        assert fingerprint(state) != before

        game.player.hand.cards.reverse()
        assert fingerprint(view(game)) != before

    def test_fingerprint_failure_returns_none(self):
        """Test an unserializable state gives None instead of raising."""
        assert fingerprint(object()) is None

    def test_action_signature_includes_targets(self):
        """Test the same card on different targets gives different signatures."""
        zap = Card.from_dict(ZAP)
        first, second = Action(card=zap), Action(card=zap)
        first.target_signature = 'damage:a'
        second.target_signature = 'damage:b'

        assert action_signature(first) != action_signature(second)
        assert first == second

    def test_attack_signature_uses_face_sentinel(self):
        """Test hero-targeted attacks use the face sentinel."""
        game = make_game()
        put_on_board(game, game.player, {'name': 'Knight', 'attack': 3, 'health': 3})
        attacks = [a for a in make_sim().legal_actions(view(game)) if a.is_attack]

        assert action_signature(attacks[0]).endswith('->face')

    def test_card_signature(self):
        """Test identified cards use their id."""
        card = Card.from_dict({**FOOTMAN, 'id': 'c-1'})

        assert card_signature(card) == 'id:c-1'
        assert card_signature(None) == 'none'


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
