"""
Match Simulation Script

Entry point for playing AI-vs-AI matches with the MCTS card-game AI.

Usage:
    # Ten medium-vs-medium matches
    python -m ccg.simulate --games 10

    # Hard AI against an easy one, fixed seed
    python -m ccg.simulate --difficulty hard --opponent-difficulty easy --seed 42

    # Custom search config and a trained guidance model
    python -m ccg.simulate --config configs/search.json --model models/pv.pth
"""

import argparse
import asyncio
import logging
import sys
import time
from collections import Counter
from typing import Optional

from rich.console import Console
from rich.table import Table

from ccg.config import SearchConfig, get_difficulty_config, get_fast_config
from ccg.game.engine import Game
from ccg.mcts.agent import MCTSAI
from ccg.network.guidance import build_guidance

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Play AI-vs-AI matches with the MCTS card-game AI",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    # Matches
    parser.add_argument(
        '--games',
        type=int,
        default=1,
        help='Number of matches to play',
    )
    parser.add_argument(
        '--max-turns',
        type=int,
        default=60,
        help='Turn limit per match (unfinished matches count as draws)',
    )
    parser.add_argument(
        '--seed',
        type=int,
        default=None,
        help='Base random seed for decks and search',
    )

    # Configuration
    parser.add_argument(
        '--difficulty',
        type=str,
        choices=['easy', 'medium', 'hard', 'insane', 'nightmare'],
        default='medium',
        help='Difficulty preset for the first player',
    )
    parser.add_argument(
        '--opponent-difficulty',
        type=str,
        choices=['easy', 'medium', 'hard', 'insane', 'nightmare'],
        default=None,
        help='Difficulty preset for the second player (defaults to --difficulty)',
    )
    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to JSON search config file (overrides --difficulty)',
    )
    parser.add_argument(
        '--fast',
        action='store_true',
        help='Use fast config for testing/debugging',
    )
    parser.add_argument(
        '--model',
        type=str,
        default=None,
        help='Path to a policy-value checkpoint (enables guidance)',
    )

    # Output
    parser.add_argument(
        '--quiet',
        action='store_true',
        help='Skip the results table',
    )
    parser.add_argument(
        '--log-level',
        type=str,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default='INFO',
        help='Logging level',
    )

    return parser.parse_args(argv)


def setup_logging(log_level: str = 'INFO'):
    """
    Setup console logging.

    Args:
        log_level: Logging level
    """
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    date_format = '%Y-%m-%d %H:%M:%S'
    logging.basicConfig(
        level=getattr(logging, log_level),
        format=log_format,
        datefmt=date_format,
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def load_config(args: argparse.Namespace, difficulty: str, seed: Optional[int]) -> SearchConfig:
    """Build the SearchConfig for one side from the command line."""
    if args.config:
        config = SearchConfig.from_file(args.config)
    elif args.fast:
        config = get_fast_config()
    else:
        config = get_difficulty_config(difficulty)

    if args.model:
        config.use_guidance = True
        config.model_path = args.model
    config.seed = seed
    config.validate()
    return config


async def play_match(
    first: SearchConfig,
    second: SearchConfig,
    seed: Optional[int] = None,
    max_turns: int = 60,
) -> Game:
    """
    Play one match between two MCTS AIs.

    Args:
        first: Config for the player who moves first
        second: Config for the opponent
        seed: Deck shuffle seed
        max_turns: Turn limit

    Returns:
        The finished (or turn-limited) Game
    """
    game = Game(seed=seed, player_name='First', opponent_name='Second')
    game.setup_match()
    ais = {
        game.player.id: MCTSAI(game, first, guidance=build_guidance(first)),
        game.opponent.id: MCTSAI(game, second, guidance=build_guidance(second)),
    }

    active, waiting = game.player, game.opponent
    try:
        while not game.match_over and game.turns.turn <= max_turns:
            await ais[active.id].take_turn(active, waiting)
            if game.match_over:
                break
            game.end_turn()
            active, waiting = waiting, active
    finally:
        for ai in ais.values():
            ai.shutdown()
    return game


def results_table(results: Counter, games: int, elapsed: float) -> Table:
    """Summary table of match outcomes."""
    table = Table(title=f"Results ({games} games, {elapsed:.1f}s)")
    table.add_column("Outcome", style="cyan", no_wrap=True)
    table.add_column("Games", justify="right")
    table.add_column("Share", justify="right")
    for outcome, count in results.most_common():
        table.add_row(outcome, str(count), f"{count / max(games, 1):.1%}")
    return table


def main(argv=None):
    """Main simulation entry point."""
    args = parse_args(argv)
    setup_logging(args.log_level)

    logger.info("=" * 60)
    logger.info("MCTS card-game AI - match simulation")
    logger.info("=" * 60)

    results = Counter()
    start = time.time()
    for index in range(args.games):
        seed = None if args.seed is None else args.seed + index
        first = load_config(args, args.difficulty, seed)
        second = load_config(args, args.opponent_difficulty or args.difficulty, None if seed is None else seed + 10_000)
        if index == 0:
            logger.info(str(first))

        game = asyncio.run(play_match(first, second, seed=seed, max_turns=args.max_turns))
        winner = game.winner.name if game.winner is not None else 'draw'
        results[winner] += 1
        logger.info(
            f"Game {index + 1}/{args.games}: winner={winner}, turns={game.turns.turn}, "
            f"health {game.player.hero.health}-{game.opponent.hero.health}"
        )

    elapsed = time.time() - start
    logger.info(f"Results after {args.games} games ({elapsed:.1f}s): {dict(results)}")
    if not args.quiet:
        Console().print(results_table(results, args.games, elapsed))
    return results


if __name__ == '__main__':
    main()
