"""
End-to-end tests: MCTSAI playing turns of a live Game.

Tests cover:
- Trades, heals, overload, Rush and lethal decisions on small boards
- Turn cut-offs (no useful action, rejected action, action limit, resume)
- Every execution mode
- Full matches and the simulation CLI
"""

import asyncio
from collections import Counter

import pytest

from ccg.config import SearchConfig, get_fast_config
from ccg.game.engine import Game
from ccg.game.entities import Card
from ccg.mcts.actions import Action
from ccg.mcts.agent import MCTSAI
from ccg.mcts.executors import SearchExecutor
from ccg.mcts.state import state_from_live
from ccg.simulate import main, play_match, results_table


def run(coro):
    return asyncio.run(coro)


def make_game(turn=5, seed=3, hero_power=False):
    game = Game(seed=seed)
    game.turns.turn = turn
    if not hero_power:
        game.player.hero.active = []
    return game


def give(player, data):
    card = Card.from_dict(data)
    card.owner = player
    player.hand.add(card)
    return card


def put_on_board(game, player, data):
    card = Card.from_dict(data)
    card.enter_play(game.turns.turn - 1)
    card.summoning_sick = False
    player.add_to_battlefield(card)
    return card


def make_ai(game, **kwargs):
    kwargs.setdefault('iterations', 80)
    kwargs.setdefault('seed', 11)
    return MCTSAI(game, SearchConfig(**kwargs))


def play_turn(ai, game, resume=False):
    try:
        return run(ai.take_turn(game.player, game.opponent, resume=resume))
    finally:
        ai.shutdown()


FOOTMAN = {'name': 'Footman', 'cost': 1, 'attack': 1, 'health': 2}
ZAP = {'name': 'Zap', 'type': 'spell', 'cost': 1,
       'effects': [{'type': 'damage', 'target': 'any', 'amount': 2}]}
POTION = {'name': 'Healing Potion', 'type': 'consumable', 'cost': 1,
          'effects': [{'type': 'heal', 'target': 'character', 'amount': 5}]}
STORM = {'name': 'Storm', 'type': 'spell', 'cost': 1,
         'effects': [{'type': 'damage', 'target': 'enemyHero', 'amount': 5},
                     {'type': 'overload', 'amount': 2}]}
WOLF_RIDER = {'name': 'Wolf Rider', 'cost': 3, 'attack': 3, 'health': 1, 'keywords': ['Rush']}


def injured_hero_game():
    game = make_game()
    game.player.hero.health = 20
    give(game.player, POTION)
    return game


class StaleExecutor(SearchExecutor):
    """Always proposes a card that is not in hand."""

    def __init__(self):
        self.calls = 0

    async def run(self, search, root_state):
        self.calls += 1
        return Action(card=Card.from_dict(FOOTMAN))


class TestTurnDecisions:
    """Test the AI's choices on small boards."""

    def test_trades_into_threatening_ally(self):
        """Test a 2/2 trades with a 5/2 instead of going face."""
        game = make_game()
        archer = put_on_board(game, game.player, {'name': 'Archer', 'cost': 2, 'attack': 2, 'health': 2})
        brute = put_on_board(game, game.opponent, {'name': 'Brute', 'cost': 4, 'attack': 5, 'health': 2})

        assert play_turn(make_ai(game), game)

        assert brute not in game.opponent.battlefield.cards
        assert archer not in game.player.battlefield.cards
        assert brute in game.opponent.graveyard.cards
        assert archer in game.player.graveyard.cards
        assert game.opponent.hero.health == 30

    def test_heals_injured_hero(self):
        """Test a heal is spent on the injured hero."""
        game = injured_hero_game()
        potion = game.player.hand.cards[0]

        play_turn(make_ai(game), game)

        assert game.player.hero.health == 25
        assert len(game.player.hand) == 0
        assert potion in game.player.graveyard.cards

    def test_overload_applies_next_turn(self):
        """Test an overload spell is played and shrinks the next pool."""
        game = make_game()
        give(game.player, STORM)

        play_turn(make_ai(game), game)

        assert game.opponent.hero.health == 25
        assert game.resources.pending_overload(game.player) == 2

        game.end_turn()
        game.end_turn()
        game.begin_turn(game.player)
        assert game.turns.turn == 6
        assert game.resources.pool(game.player) == 4

    def test_overload_carried_into_next_root_state(self):
        """Test a turn-3 overload shows in the root state and shrinks turn 4."""
        game = make_game(turn=3)
        give(game.player, STORM)

        play_turn(make_ai(game), game)

        assert game.opponent.hero.health == 25
        root = state_from_live(game, game.player, game.opponent)
        assert root.overload_next_player == 2
        assert root.overload_next_opponent == 0

        game.end_turn()
        game.end_turn()
        assert state_from_live(game, game.player, game.opponent).overload_next_player == 2
        game.begin_turn(game.player)
        assert game.turns.turn == 4
        assert game.resources.pool(game.player) == 2
        assert state_from_live(game, game.player, game.opponent).overload_next_player == 0

    def test_no_useful_action(self):
        """Test a heal at full health is kept and the turn ends."""
        game = make_game()
        potion = give(game.player, POTION)

        assert play_turn(make_ai(game), game)

        assert potion in game.player.hand.cards
        assert game.player.hero.health == 30
        assert game.log == []

    def test_rush_ally_does_not_go_face(self):
        """Test a Rush ally played this turn never hits the enemy hero."""
        game = make_game()
        rider = give(game.player, WOLF_RIDER)

        play_turn(make_ai(game), game)

        assert rider in game.player.battlefield.cards
        assert game.opponent.hero.health == 30

    def test_takes_lethal(self):
        """Test the AI finishes a 2-health hero with Zap."""
        game = make_game()
        game.opponent.hero.health = 2
        give(game.player, FOOTMAN)
        give(game.player, ZAP)

        assert play_turn(make_ai(game), game)

        assert game.match_over
        assert game.winner is game.player

    def test_same_seed_same_turn(self):
        """Test two identical games with the same seed play the same turn."""
        logs = []
        for _ in range(2):
            game = make_game(hero_power=True)
            game.player.hero.health = 22
            give(game.player, FOOTMAN)
            give(game.player, ZAP)
            give(game.player, POTION)
            put_on_board(game, game.opponent, {'name': 'Squire', 'cost': 1, 'attack': 2, 'health': 1})
            play_turn(make_ai(game, seed=5), game)
            logs.append((list(game.log), game.player.hero.health, game.opponent.hero.health))

        assert logs[0] == logs[1]


class TestTurnLimits:
    """Test the ways a turn is cut short."""

    def test_rejected_action_ends_turn(self):
        """Test an action the engine rejects stops the turn without retrying."""
        game = make_game()
        executor = StaleExecutor()
        ai = MCTSAI(game, SearchConfig(iterations=10, seed=1), executor=executor)

        assert play_turn(ai, game)
        assert executor.calls == 1
        assert game.log == []

    def test_action_limit(self):
        """Test max_actions_per_turn caps the number of applied actions."""
        game = make_game()
        give(game.player, FOOTMAN)
        give(game.player, dict(FOOTMAN))

        play_turn(make_ai(game, max_actions_per_turn=1), game)

        assert len(game.player.battlefield.cards) <= 1
        assert len(game.player.hand) >= 1

    def test_resume_skips_draw(self):
        """Test resuming a turn does not draw or refresh."""
        game = make_game()
        game.player.library.cards = [Card.from_dict(FOOTMAN) for _ in range(3)]
        game.resources.set_pool(game.player, 0)

        play_turn(make_ai(game, iterations=20), game, resume=True)

        assert len(game.player.library.cards) == 3
        assert len(game.player.hand) == 0

    def test_new_turn_draws(self):
        """Test a normal turn draws one card."""
        game = make_game()
        game.player.library.cards = [Card.from_dict(ZAP) for _ in range(3)]

        play_turn(make_ai(game, iterations=20), game)

        assert len(game.player.library.cards) == 2


class TestExecutionModes:
    """Test every execution mode plays a sensible turn."""

    @pytest.mark.parametrize('mode', ['sync', 'async', 'full_sim', 'worker'])
    def test_heal_in_every_mode(self, mode):
        """Test each mode finds the heal."""
        game = injured_hero_game()

        play_turn(make_ai(game, iterations=60, execution_mode=mode, yield_every=5), game)

        assert game.player.hero.health == 25

    def test_progress_reported(self):
        """Test the progress callback reaches completion."""
        game = injured_hero_game()
        seen = []
        ai = MCTSAI(game, SearchConfig(iterations=40, seed=1, progress_interval=10),
                    progress_callback=seen.append)

        play_turn(ai, game)

        assert seen
        assert seen[-1] == pytest.approx(1.0)
        assert all(0 <= p <= 1 for p in seen)


class TestMatches:
    """Test whole matches and the CLI."""

    def test_play_match(self):
        """Test a short match respects the turn limit."""
        config = get_fast_config()
        config.iterations = 20
        config.seed = 1
        game = run(play_match(config, config, seed=1, max_turns=3))

        assert game.match_over or game.turns.turn == 4
        assert game.player.hero.health <= 30

    def test_cli_main(self):
        """Test the CLI plays the requested number of games."""
        results = main(['--games', '1', '--fast', '--max-turns', '2', '--seed', '1',
                        '--log-level', 'WARNING'])

        assert sum(results.values()) == 1

    def test_results_table(self):
        """Test the summary table has one row per outcome."""
        table = results_table(Counter({'First': 3, 'draw': 1}), games=4, elapsed=2.0)

        assert table.row_count == 2
        assert [c.header for c in table.columns] == ['Outcome', 'Games', 'Share']


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
