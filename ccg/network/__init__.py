"""
Neural network module for the card-game AI.

This module contains:
- Feature encoding: Convert search states and actions to tensors
- Neural network: MLP action-value network and checkpointing
- Guidance: Adapter turning network output into search priors
"""

from ccg.network.encode import ActionEncoder, StateEncoder
from ccg.network.model import (
    PolicyValueNet,
    create_model,
    load_checkpoint,
    save_checkpoint,
)
from ccg.network.guidance import GuidanceResult, PolicyValueAdapter, build_guidance

__all__ = [
    "StateEncoder",
    "ActionEncoder",
    "PolicyValueNet",
    "create_model",
    "save_checkpoint",
    "load_checkpoint",
    "GuidanceResult",
    "PolicyValueAdapter",
    "build_guidance",
]
