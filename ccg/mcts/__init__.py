"""
Monte Carlo Tree Search AI for the card battle game.

This module provides the single-turn planner and the pieces it is built from:
- GameStateView / Action: Search state and action records
- fingerprint / action_signature: State digests for tree reuse, action keys
- evaluate_game_state: Heuristic board evaluation
- FastSimulator / FullSimulator: Cloned-state and real-engine simulators
- MCTSNode / MCTS: Tree and search loop with tree reuse
- Executors: Sync, cooperative, worker-process and full-sim search runners
- MCTSAI: Turn orchestrator acting on a live Game

Example:
    >>> from ccg.game import Game
    >>> from ccg.mcts import MCTSAI
    >>> from ccg.config import SearchConfig
    >>>
    >>> game = Game(seed=1)
    >>> game.setup_match()
    >>> ai = MCTSAI(game, SearchConfig(iterations=200, seed=1))
    >>> asyncio.run(ai.take_turn(game.player, game.opponent))
    True
"""

from ccg.mcts.actions import Action, AttackDescriptor
from ccg.mcts.state import GameStateView, state_from_live
from ccg.mcts.signatures import action_signature, card_signature, fingerprint
from ccg.mcts.heuristics import choose_attack_target, evaluate_game_state, evaluate_state
from ccg.mcts.simulation import FastSimulator, PlayoutResult, StepResult
from ccg.mcts.full_sim import FullSimulator
from ccg.mcts.node import MCTSNode
from ccg.mcts.search import MCTS, SearchStats, TreeCache
from ccg.mcts.executors import (
    CooperativeExecutor,
    FullSimExecutor,
    SearchExecutor,
    SyncExecutor,
    WorkerExecutor,
    create_executor,
)
from ccg.mcts.agent import MCTSAI

__all__ = [
    "Action",
    "AttackDescriptor",
    "GameStateView",
    "state_from_live",
    "action_signature",
    "card_signature",
    "fingerprint",
    "choose_attack_target",
    "evaluate_game_state",
    "evaluate_state",
    "FastSimulator",
    "StepResult",
    "PlayoutResult",
    "FullSimulator",
    "MCTSNode",
    "MCTS",
    "SearchStats",
    "TreeCache",
    "SearchExecutor",
    "SyncExecutor",
    "CooperativeExecutor",
    "WorkerExecutor",
    "FullSimExecutor",
    "create_executor",
    "MCTSAI",
]
