"""
Search executors.

Every executor runs one search for the orchestrator behind the same
interface::

    action = await executor.run(search, root_state)

    - SyncExecutor: search() inline; blocks the event loop for the whole search
    - CooperativeExecutor: search_async(), yielding every ``yield_every`` iterations
    - WorkerExecutor: search() in a worker process; falls back to SyncExecutor
      when process pools are unavailable or the worker fails
    - FullSimExecutor: search_full_sim_async() through the real engine

Worker searches build their own MCTS from the config, so they neither read
nor update the caller's tree cache.
"""

import asyncio
import logging
from concurrent.futures import ProcessPoolExecutor
from typing import Any, Dict, Optional

import numpy as np

from ccg.config import SearchConfig
from ccg.mcts.actions import Action
from ccg.mcts.search import MCTS
from ccg.mcts.state import GameStateView

logger = logging.getLogger(__name__)


def run_search_in_worker(config_dict: Dict[str, Any], root_state: GameStateView, guidance=None) -> Action:
    """
    Static worker function for off-process search.

    Defined at module level (not as a method) so it can be pickled. The
    worker rebuilds an MCTS from the config, seeded by the caller.

    Args:
        config_dict: SearchConfig.to_dict() with a per-call seed
        root_state: Pickled copy of the root state
        guidance: Optional picklable guidance adapter

    Returns:
        Chosen action (its card is a copy; callers use ids only)
    """
    config = SearchConfig.from_dict(config_dict)
    search = MCTS(config, guidance=guidance, rng=np.random.default_rng(config.seed))
    return search.search(root_state)


class SearchExecutor:
    """Runs one search and returns the chosen action."""

    name = 'base'

    async def run(self, search: MCTS, root_state: GameStateView) -> Action:
        raise NotImplementedError

    def shutdown(self) -> None:
        """Release any resources held by the executor."""


class SyncExecutor(SearchExecutor):
    name = 'sync'

    async def run(self, search: MCTS, root_state: GameStateView) -> Action:
        return search.search(root_state)


class CooperativeExecutor(SearchExecutor):
    name = 'async'

    def __init__(self, yield_every: Optional[int] = None):
        self.yield_every = yield_every

    async def run(self, search: MCTS, root_state: GameStateView) -> Action:
        return await search.search_async(root_state, yield_every=self.yield_every)


class FullSimExecutor(SearchExecutor):
    name = 'full_sim'

    async def run(self, search: MCTS, root_state: GameStateView) -> Action:
        return await search.search_full_sim_async(root_state)


class WorkerExecutor(SearchExecutor):
    """
    Runs the search in a single worker process.

    The pool is created lazily. Any failure (pool creation, pickling,
    worker crash) is logged and the search is rerun synchronously in
    process, so a turn never fails because of the worker.
    """

    name = 'worker'

    def __init__(self, max_workers: int = 1):
        self.max_workers = max_workers
        self._pool: Optional[ProcessPoolExecutor] = None
        self._supported: Optional[bool] = None
        self._fallback = SyncExecutor()

    def is_supported(self) -> bool:
        """Whether a process pool can be created on this platform."""
        if self._supported is None:
            try:
                self._get_pool()
                self._supported = True
            except (NotImplementedError, OSError, ImportError) as e:
                logger.warning(f"Worker search unavailable, using in-process search: {e}")
                self._supported = False
        return self._supported

    def _get_pool(self) -> ProcessPoolExecutor:
        if self._pool is None:
            self._pool = ProcessPoolExecutor(max_workers=self.max_workers)
        return self._pool

    async def run(self, search: MCTS, root_state: GameStateView) -> Action:
        if not self.is_supported():
            return await self._fallback.run(search, root_state)

        payload = search.config.to_dict()
        payload['seed'] = int(search.rng.integers(2**31 - 1))
        payload['execution_mode'] = 'sync'
        search.reset_tree()

        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(
                self._get_pool(), run_search_in_worker, payload, root_state, search.guidance
            )
        except Exception as e:
            logger.warning(f"Worker search failed, falling back to in-process search: {e}")
            self.shutdown()
            return await self._fallback.run(search, root_state)

    def shutdown(self) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=False)
            self._pool = None


def create_executor(mode: str, config: Optional[SearchConfig] = None) -> SearchExecutor:
    """
    Create the executor for an execution mode.

    Args:
        mode: 'sync', 'async', 'worker' or 'full_sim'
        config: Optional config supplying yield_every

    Returns:
        SearchExecutor instance

    Raises:
        ValueError: If the mode is unknown
    """
    if mode == 'sync':
        return SyncExecutor()
    if mode == 'async':
        return CooperativeExecutor(yield_every=config.yield_every if config else None)
    if mode == 'worker':
        return WorkerExecutor()
    if mode == 'full_sim':
        return FullSimExecutor()
    raise ValueError(f"Unknown execution mode: {mode}")
