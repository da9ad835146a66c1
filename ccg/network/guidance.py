"""
Policy-value guidance for the search.

PolicyValueAdapter wraps a PolicyValueNet and answers, for one state and its
legal actions:
    - action_values: Q(s, a) per action signature
    - state_value: max Q over the actions
    - policy: softmax(Q / temperature) per action signature (sums to 1)

Failures never propagate into the search: evaluate() logs and returns None,
and the search falls back to its heuristic for that state.

Each AI owns its adapter (and model), so two AIs with different models can
play each other in one process.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import torch

from ccg.mcts.actions import Action
from ccg.mcts.signatures import action_signature
from ccg.mcts.state import GameStateView
from ccg.network.encode import ActionEncoder, StateEncoder
from ccg.network.model import PolicyValueNet, create_model, load_checkpoint

logger = logging.getLogger(__name__)


@dataclass
class GuidanceResult:
    state_value: float
    action_values: Dict[str, float] = field(default_factory=dict)
    policy: Dict[str, float] = field(default_factory=dict)


class PolicyValueAdapter:
    """
    Adapter between the search and a PolicyValueNet.

    Args:
        model: Network to query (a fresh untrained one if None)
        temperature: Softmax temperature for the policy
        device: Device the model lives on

    Example:
        >>> adapter = PolicyValueAdapter(create_model(), temperature=1.0)
        >>> result = adapter.evaluate(state, sim.legal_actions(state))
        >>> abs(sum(result.policy.values()) - 1.0) < 1e-6
        True
    """

    def __init__(
        self,
        model: Optional[PolicyValueNet] = None,
        temperature: float = 1.0,
        device: str = 'cpu',
    ):
        self.model = model if model is not None else create_model(device=device)
        self.temperature = temperature if temperature > 0 else 1.0
        self.device = device
        self.state_encoder = StateEncoder()
        self.action_encoder = ActionEncoder()

    def evaluate(self, state: GameStateView, actions: List[Action]) -> Optional[GuidanceResult]:
        """
        Score every action in ``actions``.

        Returns:
            GuidanceResult, or None if evaluation failed
        """
        try:
            return self._evaluate(state, actions)
        except Exception as e:
            logger.warning(f"Guidance evaluation failed, using heuristic: {e}")
            return None

    def _evaluate(self, state: GameStateView, actions: List[Action]) -> GuidanceResult:
        if not actions:
            return GuidanceResult(state_value=0.0)

        state_vector = self.state_encoder.encode(state)
        batch = self.action_encoder.encode_batch(state_vector, actions, state).to(self.device)

        with torch.no_grad():
            values = self.model(batch).reshape(-1).float().cpu()
            probs = torch.softmax(values / self.temperature, dim=0)

        keys = [action_signature(a) for a in actions]
        action_values = {key: float(v) for key, v in zip(keys, values.tolist())}
        policy = {key: float(p) for key, p in zip(keys, probs.tolist())}
        return GuidanceResult(
            state_value=float(values.max()),
            action_values=action_values,
            policy=policy,
        )


def build_guidance(config, device: str = 'cpu') -> Optional[PolicyValueAdapter]:
    """
    Create the guidance adapter a SearchConfig asks for.

    Args:
        config: SearchConfig (use_guidance, model_path, guidance_temperature)
        device: Device for the model

    Returns:
        PolicyValueAdapter, or None when guidance is disabled

    Raises:
        FileNotFoundError: If model_path is set but missing
    """
    if not config.use_guidance:
        return None
    if config.model_path:
        model, _ = load_checkpoint(config.model_path, device=device)
        logger.info(f"Loaded policy-value model from {config.model_path}")
    else:
        model = create_model(device=device)
        logger.info("No model_path set; using an untrained policy-value model")
    return PolicyValueAdapter(model, temperature=config.guidance_temperature, device=device)
