"""
MCTS node with UCB1 selection.

Nodes expand lazily: ``untried`` is None until the node is first reached,
then holds the legal actions not yet turned into children. Terminal children
(end of turn, lethal, stale actions) carry no state and are created already
visited once with their known value.

All values are from the searching player's perspective. The search never
crosses into the opponent's turn, so backpropagation does not negate.
"""

import math
from typing import List, Optional

from ccg.mcts.actions import Action


class MCTSNode:
    """
    Node in the MCTS tree.

    Attributes:
        state: GameStateView at this node (None for terminal children)
        parent: Parent node (None for root)
        action: Action that led here from the parent
        children: Expanded children in creation order
        untried: Legal actions not yet expanded (None = not yet enumerated)
        visits: Completed iterations that passed through this node
        total: Sum of backpropagated values
        terminal: No further actions from here
        has_lethal: A lethal outcome was found at or below this node
    """

    def __init__(
        self,
        state=None,
        parent: Optional["MCTSNode"] = None,
        action: Optional[Action] = None,
        terminal: bool = False,
    ):
        self.state = state
        self.parent = parent
        self.action = action
        self.children: List[MCTSNode] = []
        self.untried: Optional[List[Action]] = None
        self.visits = 0
        self.total = 0.0
        self.terminal = terminal
        self.has_lethal = False

    @property
    def mean_value(self) -> float:
        if self.visits == 0:
            return 0.0
        return self.total / self.visits

    def is_root(self) -> bool:
        return self.parent is None

    def is_fully_expanded(self) -> bool:
        return self.untried is not None and not self.untried

    def ucb1(self, exploration_constant: float = 1.4) -> float:
        """
        UCB1 score of this node as seen from its parent.

        mean + c * sqrt(ln(parent_visits + 1) / visits); unvisited nodes
        score +inf so every child is tried once.
        """
        if self.visits == 0:
            return math.inf
        parent_visits = self.parent.visits if self.parent is not None else 0
        return self.mean_value + exploration_constant * math.sqrt(
            math.log(parent_visits + 1) / self.visits
        )

    def select_child(self, exploration_constant: float = 1.4) -> "MCTSNode":
        """Child with the highest UCB1 score (first one wins ties)."""
        if not self.children:
            raise ValueError("Cannot select child: node has no children")
        best = self.children[0]
        best_score = best.ucb1(exploration_constant)
        for child in self.children[1:]:
            score = child.ucb1(exploration_constant)
            if score > best_score:
                best, best_score = child, score
        return best

    def add_child(self, state, action: Action) -> "MCTSNode":
        child = MCTSNode(state=state, parent=self, action=action)
        self.children.append(child)
        return child

    def add_terminal_child(self, action: Action, value: float, lethal: bool = False) -> "MCTSNode":
        """Create a terminal child, pre-visited once with its known value."""
        child = MCTSNode(state=None, parent=self, action=action, terminal=True)
        child.visits = 1
        child.total = value
        child.has_lethal = lethal
        self.children.append(child)
        return child

    def backpropagate(self, value: float, lethal: bool = False) -> None:
        """
        Add one visit and ``value`` to this node and every ancestor.

        Non-finite values (stale actions) count as visits only, so a single
        -inf child cannot poison its ancestors' means.
        """
        add_value = math.isfinite(value)
        node = self
        while node is not None:
            node.visits += 1
            if add_value:
                node.total += value
            if lethal:
                node.has_lethal = True
            node = node.parent

    def __repr__(self) -> str:
        action = self.action.describe() if self.action is not None else None
        return (
            f"MCTSNode(action={action}, visits={self.visits}, "
            f"value={self.mean_value:.3f}, children={len(self.children)})"
        )
