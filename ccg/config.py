"""
Search Configuration System

Centralized configuration for the MCTS card-game AI.
"""

import json
from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional


EXECUTION_MODES = ('sync', 'async', 'worker', 'full_sim')


@dataclass
class SearchConfig:
    """Configuration for the MCTS planner and turn orchestrator."""

    # Search budget
    iterations: int = 500
    rollout_depth: int = 4
    exploration_constant: float = 1.4  # UCB1 c

    # Rollout policy
    exploration_chance: float = 0.1  # Probability of a uniform random rollout action
    rollout_temperature: float = 10.0  # Softmax temperature over one-step value deltas
    policy_blend: float = 0.5  # Weight of the guidance policy vs value softmax

    # Execution
    execution_mode: str = 'sync'
    yield_every: int = 50  # Iterations between event-loop yields (async modes)
    progress_interval: int = 100  # Iterations between progress callbacks

    # Turn behaviour
    stop_on_lethal: bool = True
    project_opponent_response: bool = True  # Score end of turn after likely enemy attacks
    max_actions_per_turn: int = 30

    # Randomness
    seed: Optional[int] = None

    # Policy-value guidance
    use_guidance: bool = False
    guidance_temperature: float = 1.0
    model_path: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert config to dictionary.

        Returns:
            Dictionary representation of config
        """
        return asdict(self)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'SearchConfig':
        """
        Create config from dictionary.

        Args:
            config_dict: Dictionary of configuration values

        Returns:
            SearchConfig instance
        """
        # Filter out keys that aren't valid config fields
        valid_keys = {f.name for f in cls.__dataclass_fields__.values()}
        filtered_dict = {k: v for k, v in config_dict.items() if k in valid_keys}
        return cls(**filtered_dict)

    @classmethod
    def from_file(cls, filepath: str) -> 'SearchConfig':
        """
        Load config from JSON file.

        Args:
            filepath: Path to JSON config file

        Returns:
            SearchConfig instance
        """
        with open(filepath, 'r') as f:
            config_dict = json.load(f)
        return cls.from_dict(config_dict)

    def save(self, filepath: str):
        """
        Save config to JSON file.

        Args:
            filepath: Path to save config to
        """
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    def validate(self) -> bool:
        """
        Validate configuration values.

        Returns:
            True if config is valid

        Raises:
            ValueError: If config values are invalid
        """
        if self.iterations <= 0:
            raise ValueError(f"iterations must be positive, got {self.iterations}")

        if self.rollout_depth < 0:
            raise ValueError(f"rollout_depth must be non-negative, got {self.rollout_depth}")

        if self.exploration_constant < 0:
            raise ValueError(
                f"exploration_constant must be non-negative, got {self.exploration_constant}"
            )

        if not 0 <= self.exploration_chance <= 1:
            raise ValueError(
                f"exploration_chance must be in [0, 1], got {self.exploration_chance}"
            )

        if not 0 <= self.policy_blend <= 1:
            raise ValueError(f"policy_blend must be in [0, 1], got {self.policy_blend}")

        if self.rollout_temperature <= 0:
            raise ValueError(
                f"rollout_temperature must be positive, got {self.rollout_temperature}"
            )

        if self.guidance_temperature <= 0:
            raise ValueError(
                f"guidance_temperature must be positive, got {self.guidance_temperature}"
            )

        if self.execution_mode not in EXECUTION_MODES:
            raise ValueError(
                f"execution_mode must be one of {EXECUTION_MODES}, got {self.execution_mode}"
            )

        if self.yield_every <= 0:
            raise ValueError(f"yield_every must be positive, got {self.yield_every}")

        if self.progress_interval <= 0:
            raise ValueError(
                f"progress_interval must be positive, got {self.progress_interval}"
            )

        if self.max_actions_per_turn <= 0:
            raise ValueError(
                f"max_actions_per_turn must be positive, got {self.max_actions_per_turn}"
            )

        return True

    def __str__(self) -> str:
        """String representation of config."""
        lines = ["Search Configuration:"]
        lines.append(f"  MCTS: {self.iterations} iterations, depth={self.rollout_depth}, c={self.exploration_constant}")
        lines.append(f"  Rollouts: explore={self.exploration_chance}, temp={self.rollout_temperature}, blend={self.policy_blend}")
        lines.append(f"  Execution: {self.execution_mode}, yield every {self.yield_every}")
        lines.append(f"  Turn: stop_on_lethal={self.stop_on_lethal}, project_response={self.project_opponent_response}")
        lines.append(f"  Guidance: {self.use_guidance}, model={self.model_path}")
        return "\n".join(lines)


DIFFICULTY_PRESETS: Dict[str, Dict[str, Any]] = {
    'easy': {'iterations': 100, 'rollout_depth': 2, 'exploration_chance': 0.3},
    'medium': {'iterations': 500, 'rollout_depth': 4},
    'hard': {'iterations': 2000, 'rollout_depth': 5},
    'insane': {'iterations': 2000, 'rollout_depth': 5, 'use_guidance': True},
    'nightmare': {'iterations': 5000, 'rollout_depth': 6, 'use_guidance': True, 'execution_mode': 'full_sim'},
}


def get_fast_config() -> SearchConfig:
    """
    Get a fast search config for testing/debugging.

    Returns:
        SearchConfig with a small iteration budget and no opponent projection
    """
    return SearchConfig(
        iterations=60,
        rollout_depth=2,
        yield_every=10,
        progress_interval=20,
        project_opponent_response=False,
    )


def get_difficulty_config(name: str) -> SearchConfig:
    """
    Get the config for a named difficulty.

    Args:
        name: One of easy, medium, hard, insane, nightmare

    Returns:
        SearchConfig for that difficulty

    Raises:
        ValueError: If the difficulty is unknown
    """
    preset = DIFFICULTY_PRESETS.get(name.lower())
    if preset is None:
        raise ValueError(
            f"Unknown difficulty '{name}', expected one of {sorted(DIFFICULTY_PRESETS)}"
        )
    return SearchConfig(**preset)
