import math
from dataclasses import dataclass, field
from typing import List, Optional

from .state import Action, FinancialState


@dataclass
class MCTSNode:
    state: FinancialState
    parent: Optional[int] = None          # arena index, lookup only
    action: Optional[Action] = None       # action taken from the parent
    depth: int = 0
    children: List[int] = field(default_factory=list)
    visits: int = 0
    cumulative_reward: float = 0.0
    untried_actions: List[Action] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return not self.children and not self.untried_actions

    @property
    def mean_reward(self) -> float:
        # unvisited nodes have no estimate yet
        if self.visits == 0:
            return 0.0
        return self.cumulative_reward / self.visits


class SearchTree:
    """Flat arena of nodes for one search; parent/child links are indices.

    Index 0 is the root. Nodes are only ever appended as children of an
    existing node, so the structure is a tree by construction.
    """

    ROOT = 0

    def __init__(self, root_state: FinancialState, root_actions: List[Action]):
        self.nodes: List[MCTSNode] = [MCTSNode(state=root_state, untried_actions=list(root_actions))]
        self.max_depth = 0

    def __len__(self):
        return len(self.nodes)

    def __getitem__(self, index: int) -> MCTSNode:
        return self.nodes[index]

    @property
    def root(self) -> MCTSNode:
        return self.nodes[self.ROOT]

    def add_child(self, parent: int, state: FinancialState, action: Action, untried_actions: List[Action]) -> int:
        depth = self.nodes[parent].depth + 1
        self.nodes.append(
            MCTSNode(state=state, parent=parent, action=action, depth=depth, untried_actions=list(untried_actions))
        )
        index = len(self.nodes) - 1
        self.nodes[parent].children.append(index)
        self.max_depth = max(self.max_depth, depth)
        return index

    def ucb_score(self, child: int, exploration_constant: float) -> float:
        """UCB1: mean reward plus ``c * sqrt(2 ln(N_parent) / n_child)``.

        An unvisited child scores ``+inf`` while exploring (``c > 0``) and its
        0.0 mean otherwise; the parent count is floored at 1 for the log.
        """
        node = self.nodes[child]
        if node.visits == 0:
            return math.inf if exploration_constant > 0 else 0.0
        parent_visits = self.nodes[node.parent].visits if node.parent is not None else node.visits
        exploration = math.sqrt(2.0 * math.log(max(parent_visits, 1)) / node.visits)
        return node.mean_reward + exploration_constant * exploration

    def best_child(self, index: int, exploration_constant: float) -> int:
        """Child of ``index`` with the highest UCB1 score; first one wins ties."""
        children = self.nodes[index].children
        if not children:
            raise ValueError(f"node {index} has no children")
        best, best_score = children[0], -math.inf
        for child in children:
            score = self.ucb_score(child, exploration_constant)
            if score > best_score:
                best, best_score = child, score
        return best

    def backpropagate(self, index: Optional[int], reward: float) -> None:
        while index is not None:
            node = self.nodes[index]
            node.visits += 1
            node.cumulative_reward += reward
            index = node.parent

    def path_to(self, index: int) -> List[int]:
        """Indices from the root down to ``index`` inclusive."""
        path = []
        while index is not None:
            path.append(index)
            index = self.nodes[index].parent
        path.reverse()
        return path
