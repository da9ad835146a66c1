"""
Monte Carlo Tree Search over a single turn.

The search decides the next action of the side to move. Each iteration:
    1. Selection: descend by UCB1 while nodes are fully expanded
    2. Expansion: turn one untried action into a child (terminal children
       are created pre-visited with their value)
    3. Simulation: weighted rollout from the new child
    4. Backpropagation: add the value to every node on the path

The chosen action is the root child with the highest mean value.

Three entry points share this loop:
    - search(): synchronous, fast simulator
    - search_async(): same, yielding to the event loop periodically
    - search_full_sim_async(): full simulator (real engine on clones)

Tree reuse: after a search the root and chosen child are cached. Once the
live action has been applied, advance_tree() keeps the child's subtree if
the child's simulated state fingerprints equal to the live state. Ids of
entities the simulator created (summoned tokens) are then rewritten to the
live ids throughout the subtree. The next search reuses it when its root
fingerprint matches, and only tops the subtree up to the iteration budget.

Example:
    >>> mcts = MCTS(SearchConfig(iterations=200, seed=1))
    >>> action = mcts.search(state_from_live(game, me, them))
    >>> action.describe()
    'play Zap'
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import numpy as np

from ccg.config import SearchConfig
from ccg.mcts.actions import Action
from ccg.mcts.full_sim import FullSimulator
from ccg.mcts.node import MCTSNode
from ccg.mcts.signatures import action_signature, fingerprint
from ccg.mcts.simulation import FastSimulator
from ccg.mcts.state import GameStateView

logger = logging.getLogger(__name__)

# Tree kinds
FAST_TREE = 'state'
FULL_SIM_TREE = 'sim'


def _zones(player):
    return (player.hand, player.battlefield, player.graveyard)


def live_id_map(sim_state: GameStateView, live_state: GameStateView) -> Dict[str, str]:
    """
    Simulated id -> live id for entities that differ only by id.

    Fingerprints ignore ids, so a matching child may hold tokens the
    simulator summoned under its own ids. Entities are paired by zone
    position, which equal fingerprints guarantee to line up.
    """
    id_map = {}
    for sim_side, live_side in ((sim_state.player, live_state.player),
                                (sim_state.opponent, live_state.opponent)):
        pairs = [(sim_side.hero, live_side.hero)]
        for sim_zone, live_zone in zip(_zones(sim_side), _zones(live_side)):
            pairs.extend(zip(sim_zone.cards, live_zone.cards))
        for sim_entity, live_entity in pairs:
            if sim_entity.id != live_entity.id:
                id_map[sim_entity.id] = live_entity.id
    return id_map


def _remap_tag(tag: str, id_map: Dict[str, str]) -> str:
    if ':' in tag:
        kind, entity_id = tag.split(':', 1)
        return f"{kind}:{id_map.get(entity_id, entity_id)}"
    return id_map.get(tag, tag)


def _remap_action(action: Optional[Action], id_map: Dict[str, str]) -> None:
    if action is None:
        return
    if action.card is not None and action.card.id in id_map:
        action.card.id = id_map[action.card.id]
    if action.attack is not None:
        action.attack.attacker_id = id_map.get(action.attack.attacker_id, action.attack.attacker_id)
        action.attack.target_id = id_map.get(action.attack.target_id, action.attack.target_id)
    if action.resolved_targets:
        action.resolved_targets = [id_map.get(i, i) for i in action.resolved_targets]
    if action.target_signature:
        action.target_signature = ','.join(
            _remap_tag(tag, id_map) for tag in action.target_signature.split(',')
        )


def _remap_state(state: GameStateView, id_map: Dict[str, str]) -> None:
    for side in (state.player, state.opponent):
        side.hero.id = id_map.get(side.hero.id, side.hero.id)
        for zone in _zones(side):
            for card in zone.cards:
                card.id = id_map.get(card.id, card.id)
    state.entered_this_turn = {id_map.get(i, i) for i in state.entered_this_turn}
    state.enraged_player_this_turn = {
        id_map.get(k, k): v for k, v in state.enraged_player_this_turn.items()
    }
    state.enraged_opponent_this_turn = {
        id_map.get(k, k): v for k, v in state.enraged_opponent_this_turn.items()
    }
    # Guidance results are keyed by action signatures, which embed ids
    state._guidance = None


def remap_subtree(root: MCTSNode, id_map: Dict[str, str]) -> None:
    """Rewrite ids in every state and action below ``root``."""
    stack = [root]
    while stack:
        node = stack.pop()
        if node.state is not None:
            _remap_state(node.state, id_map)
        for action in node.untried or ():
            _remap_action(action, id_map)
        for child in node.children:
            _remap_action(child.action, id_map)
            stack.append(child)


@dataclass
class TreeCache:
    """Cached tree for reuse across consecutive searches in one turn."""

    node: MCTSNode
    kind: str
    signature: Optional[str]
    action_child: Optional[MCTSNode] = None


@dataclass
class SearchStats:
    iterations_run: int
    root_visits: int
    reused: bool
    stopped_on_lethal: bool
    kind: str


class MCTS:
    """
    Single-turn MCTS planner.

    Args:
        config: SearchConfig with iteration budget and rollout settings
        guidance: Optional policy-value adapter with evaluate(state, actions)
        rng: numpy Generator; defaults to default_rng(config.seed)
        progress_callback: Optional callable receiving completion in [0, 1]
    """

    def __init__(
        self,
        config: Optional[SearchConfig] = None,
        guidance=None,
        rng: Optional[np.random.Generator] = None,
        progress_callback: Optional[Callable[[float], None]] = None,
    ):
        self.config = config or SearchConfig()
        self.rng = rng if rng is not None else np.random.default_rng(self.config.seed)
        self.simulator = FastSimulator(
            rng=self.rng,
            rollout_depth=self.config.rollout_depth,
            exploration_chance=self.config.exploration_chance,
            rollout_temperature=self.config.rollout_temperature,
            policy_blend=self.config.policy_blend,
            project_opponent_response=self.config.project_opponent_response,
        )
        self.full_simulator = FullSimulator(self.simulator)
        self.guidance = guidance
        self.progress_callback = progress_callback

        self._last_tree: Optional[TreeCache] = None
        self.last_search_stats: Optional[SearchStats] = None

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def search(self, root_state: GameStateView) -> Action:
        """
        Run a synchronous search with the fast simulator.

        Args:
            root_state: State of the side to move

        Returns:
            Best action (end turn if nothing better was found)
        """
        root, iterations, reused = self._prepare_root(root_state, FAST_TREE)
        ran, stopped = 0, False
        for i in range(iterations):
            self._iterate(root)
            ran += 1
            self._emit_progress(i + 1, iterations)
            if self._should_stop_search(root):
                stopped = True
                break
        return self._finish(root, ran, reused, FAST_TREE, stopped)

    async def search_async(self, root_state: GameStateView, yield_every: Optional[int] = None) -> Action:
        """Fast-simulator search that yields to the event loop every ``yield_every`` iterations."""
        yield_every = yield_every or self.config.yield_every
        root, iterations, reused = self._prepare_root(root_state, FAST_TREE)
        ran, stopped = 0, False
        for i in range(iterations):
            self._iterate(root)
            ran += 1
            self._emit_progress(i + 1, iterations)
            if self._should_stop_search(root):
                stopped = True
                break
            if (i + 1) % yield_every == 0:
                await asyncio.sleep(0)
        return self._finish(root, ran, reused, FAST_TREE, stopped)

    async def search_full_sim_async(self, root_state: GameStateView) -> Action:
        """Search whose expansions and rollouts run the real engine on clones."""
        root, iterations, reused = self._prepare_root(root_state, FULL_SIM_TREE)
        ran, stopped = 0, False
        for i in range(iterations):
            await self._iterate_full_sim(root)
            ran += 1
            self._emit_progress(i + 1, iterations)
            if self._should_stop_search(root):
                stopped = True
                break
            if (i + 1) % self.config.yield_every == 0:
                await asyncio.sleep(0)
        return self._finish(root, ran, reused, FULL_SIM_TREE, stopped)

    # ------------------------------------------------------------------
    # Tree cache
    # ------------------------------------------------------------------

    def reset_tree(self) -> None:
        self._last_tree = None

    def advance_tree(self, live_state: GameStateView) -> bool:
        """
        Keep the chosen child's subtree if it matches the live state.

        Call after the chosen action has been applied to the live game.

        Returns:
            True if the cache now points at the matching child
        """
        cache = self._last_tree
        if cache is None:
            return False
        child = cache.action_child
        live_signature = fingerprint(live_state)
        if (
            child is None
            or child.state is None
            or live_signature is None
            or fingerprint(child.state) != live_signature
        ):
            logger.debug("Live state diverged from the searched child; dropping tree")
            self._last_tree = None
            return False
        id_map = live_id_map(child.state, live_state)
        if id_map:
            logger.debug(f"Remapping {len(id_map)} simulated ids onto the live board")
            remap_subtree(child, id_map)
        child.parent = None
        self._last_tree = TreeCache(node=child, kind=cache.kind, signature=live_signature)
        return True

    def _prepare_root(self, root_state: GameStateView, kind: str):
        signature = fingerprint(root_state)
        cache = self._last_tree
        self._last_tree = None
        if (
            cache is not None
            and cache.kind == kind
            and signature is not None
            and cache.signature == signature
            and cache.node.state is not None
        ):
            root = cache.node
            root.parent = None
            iterations = max(1, self.config.iterations - root.visits)
            logger.debug(f"Reusing tree with {root.visits} visits, {iterations} more iterations")
            return root, iterations, True

        if kind == FULL_SIM_TREE:
            state = self.full_simulator.clone_state(root_state)
        else:
            state = self.simulator.clone_state(root_state)
        return MCTSNode(state=state), self.config.iterations, False

    # ------------------------------------------------------------------
    # Iterations
    # ------------------------------------------------------------------

    def _select(self, root: MCTSNode) -> MCTSNode:
        node = root
        while not node.terminal and node.is_fully_expanded() and node.children:
            node = node.select_child(self.config.exploration_constant)
        return node

    def _iterate(self, root: MCTSNode) -> None:
        node = self._select(root)
        if node.terminal:
            node.backpropagate(node.mean_value, node.has_lethal)
            return

        if node.untried is None:
            node.untried = self.simulator.legal_actions(node.state)
        if node.untried:
            action = self._pop_untried(node)
            result = self.simulator.apply_action(node.state, action)
            if result.terminal:
                node.add_terminal_child(action, result.value, result.lethal)
                node.backpropagate(result.value, result.lethal)
                return
            node = node.add_child(result.state, action)

        playout = self.simulator.random_playout(node.state, self._guidance_fn())
        node.backpropagate(playout.value, playout.lethal)

    async def _iterate_full_sim(self, root: MCTSNode) -> None:
        node = self._select(root)
        if node.terminal:
            node.backpropagate(node.mean_value, node.has_lethal)
            return

        sim = self.full_simulator
        if node.untried is None:
            node.untried = sim.legal_actions(node.state)
        if node.untried:
            action = self._pop_untried(node)
            result = await sim.apply_action_async(node.state, action)
            if result.terminal:
                node.add_terminal_child(action, result.value, result.lethal)
                node.backpropagate(result.value, result.lethal)
                return
            node = node.add_child(result.state, action)

        playout = await sim.random_playout_async(node.state, self._guidance_fn())
        node.backpropagate(playout.value, playout.lethal)

    def _pop_untried(self, node: MCTSNode) -> Action:
        """Uniform random untried action, or the best by guidance value plus prior."""
        guidance = self._guidance_for(node.state, node.untried) if self.guidance is not None else None
        if guidance is not None:
            best_index, best_score = 0, float('-inf')
            for i, action in enumerate(node.untried):
                sig = action_signature(action)
                score = guidance.action_values.get(sig, guidance.state_value) + guidance.policy.get(sig, 0.0)
                if score > best_score:
                    best_index, best_score = i, score
            return node.untried.pop(best_index)
        return node.untried.pop(int(self.rng.integers(len(node.untried))))

    # ------------------------------------------------------------------
    # Guidance
    # ------------------------------------------------------------------

    def _guidance_for(self, state: GameStateView, actions):
        """Policy-value evaluation of ``state``, memoized on the state."""
        if self.guidance is None or state is None:
            return None
        if state._guidance is not None:
            return state._guidance or None
        result = self.guidance.evaluate(state, actions)
        state._guidance = result if result is not None else False
        return result

    def _guidance_fn(self):
        return self._guidance_for if self.guidance is not None else None

    # ------------------------------------------------------------------
    # Finishing
    # ------------------------------------------------------------------

    def best_child(self, root: MCTSNode) -> Optional[MCTSNode]:
        """Child with the highest mean value; unvisited children rank last."""
        best, best_value = None, float('-inf')
        for child in root.children:
            value = child.mean_value if child.visits > 0 else float('-inf')
            if best is None or value > best_value:
                best, best_value = child, value
        return best

    def _should_stop_search(self, root: MCTSNode) -> bool:
        if not self.config.stop_on_lethal:
            return False
        for child in root.children:
            if child.terminal and child.has_lethal:
                return True
        return False

    def _emit_progress(self, done: int, total: int) -> None:
        if self.progress_callback is None:
            return
        if done % self.config.progress_interval != 0 and done != total:
            return
        try:
            self.progress_callback(done / total)
        except Exception as e:
            logger.debug(f"Progress callback failed: {e}")

    def _finish(self, root: MCTSNode, ran: int, reused: bool, kind: str, stopped: bool) -> Action:
        best = self.best_child(root)
        action = best.action if best is not None else Action.end_turn()
        self.last_search_stats = SearchStats(
            iterations_run=ran,
            root_visits=root.visits,
            reused=reused,
            stopped_on_lethal=stopped,
            kind=kind,
        )
        self._last_tree = TreeCache(
            node=root,
            kind=kind,
            signature=fingerprint(root.state),
            action_child=best,
        )
        logger.debug(
            f"Search ({kind}) ran {ran} iterations, root visits {root.visits}, "
            f"chose {action.describe()}"
        )
        return action
