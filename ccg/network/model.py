"""
Policy-value network for the card-game AI.

PolicyValueNet is a small MLP that maps one (state, action) feature row to a
scalar action value Q(s, a). The guidance adapter turns the Q values of all
legal actions into a state value (max Q) and a policy (softmax over Q).

Architecture:
    Input (35) → Linear (64) → ReLU → Linear (64) → ReLU → Linear (1)

Kept deliberately small so that per-node evaluation inside the search stays
cheap on CPU.
"""

import torch
import torch.nn as nn
from typing import Tuple, Optional, Dict
from pathlib import Path

from ccg.network.encode import INPUT_DIM


class PolicyValueNet(nn.Module):
    """
    MLP action-value network.

    Args:
        input_dim: Width of a (state, action) feature row (default: 35)
        hidden_dim: Width of both hidden layers (default: 64)
    """

    def __init__(self, input_dim: int = INPUT_DIM, hidden_dim: int = 64):
        super(PolicyValueNet, self).__init__()

        self.input_dim = input_dim
        self.hidden_dim = hidden_dim

        self.layers = nn.Sequential(
            nn.Linear(input_dim, hidden_dim),
            nn.ReLU(),
            nn.Linear(hidden_dim, hidden_dim),
            nn.ReLU(),
            nn.Linear(hidden_dim, 1),
        )

        self._init_weights()

    def _init_weights(self):
        """Initialize weights with Xavier initialization."""
        for module in self.modules():
            if isinstance(module, nn.Linear):
                nn.init.xavier_uniform_(module.weight)
                if module.bias is not None:
                    nn.init.zeros_(module.bias)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """
        Score (state, action) rows.

        Args:
            x: Tensor of shape (input_dim,) or (batch, input_dim)

        Returns:
            Action values of shape () or (batch,)
        """
        single_input = x.dim() == 1
        if single_input:
            x = x.unsqueeze(0)

        values = self.layers(x).squeeze(-1)

        if single_input:
            values = values.squeeze(0)
        return values

    def get_num_parameters(self) -> int:
        """
        Get total number of trainable parameters.

        Returns:
            Number of parameters
        """
        return sum(p.numel() for p in self.parameters() if p.requires_grad)


def create_model(
    input_dim: int = INPUT_DIM,
    device: str = 'cpu',
    **kwargs
) -> PolicyValueNet:
    """
    Factory function to create a PolicyValueNet.

    Args:
        input_dim: Width of a feature row (default: 35)
        device: Device to place model on (default: 'cpu')
        **kwargs: Additional arguments passed to PolicyValueNet constructor

    Returns:
        PolicyValueNet model instance in eval mode

    Example:
        >>> model = create_model(hidden_dim=32)
        >>> print(f"Model has {model.get_num_parameters():,} parameters")
    """
    model = PolicyValueNet(input_dim=input_dim, **kwargs)
    model.to(device)
    model.eval()
    return model


def save_checkpoint(
    model: PolicyValueNet,
    filepath: str,
    metadata: Optional[Dict] = None,
):
    """
    Save model checkpoint.

    Checkpoint contains:
        - model_state_dict: Model weights
        - input_dim / hidden_dim: Architecture needed to rebuild the model
        - metadata: Optional metadata
    """
    checkpoint = {
        'model_state_dict': model.state_dict(),
        'input_dim': model.input_dim,
        'hidden_dim': model.hidden_dim,
    }

    if metadata is not None:
        checkpoint['metadata'] = metadata

    # Create directory if it doesn't exist
    Path(filepath).parent.mkdir(parents=True, exist_ok=True)

    torch.save(checkpoint, filepath)


def load_checkpoint(filepath: str, device: str = 'cpu') -> Tuple[PolicyValueNet, Optional[Dict]]:
    """
    Load a model checkpoint.

    Args:
        filepath: Path to checkpoint file
        device: Device to place the model on

    Returns:
        model: PolicyValueNet with the saved weights, in eval mode
        metadata: Optional metadata from checkpoint

    Raises:
        FileNotFoundError: If checkpoint file doesn't exist
    """
    if not Path(filepath).exists():
        raise FileNotFoundError(f"Checkpoint not found: {filepath}")

    checkpoint = torch.load(filepath, map_location=device)

    model = create_model(
        input_dim=checkpoint.get('input_dim', INPUT_DIM),
        device=device,
        hidden_dim=checkpoint.get('hidden_dim', 64),
    )
    model.load_state_dict(checkpoint['model_state_dict'])
    model.eval()

    return model, checkpoint.get('metadata', None)
