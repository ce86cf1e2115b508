"""
Run configuration handling for the puzzle GA.

A run configuration is a YAML mapping with a 'mode' (evolve or evaluate),
an 'input' section naming the puzzle file, and for evolve runs an 'output'
section plus optional GA settings. This module loads and validates it and
dispatches to the matching workflow in orchestration.
"""

from typing import Any, Dict, Optional, Union
from pathlib import Path
import yaml

RUN_MODES = ('evolve', 'evaluate')


class ConfigValidationError(Exception):
    """Raised when a run or GA configuration is invalid."""
    pass


def load_run_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read a run configuration mapping from YAML.

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigValidationError: If the file is empty, not YAML, or not a mapping
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Run configuration not found: {config_path}")

    try:
        config = yaml.safe_load(config_path.read_text())
    except yaml.YAMLError as e:
        raise ConfigValidationError(f"{config_path} is not valid YAML: {e}")

    if config is None:
        raise ConfigValidationError(f"Run configuration {config_path} is empty")
    if not isinstance(config, dict):
        raise ConfigValidationError(
            f"Run configuration {config_path} must be a mapping, got {type(config).__name__}"
        )

    return config


def validate_run_config(config: Dict[str, Any]) -> None:
    """
    Validate run configuration structure.

    Args:
        config: Run configuration dictionary

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    if 'mode' not in config:
        raise ConfigValidationError("Missing required field: 'mode'")

    mode = config['mode']
    if mode not in RUN_MODES:
        raise ConfigValidationError(
            f"Invalid mode: '{mode}'. Must be one of {', '.join(RUN_MODES)}"
        )

    if 'input' not in config:
        raise ConfigValidationError("Missing required field: 'input'")

    if not isinstance(config['input'], dict):
        raise ConfigValidationError("'input' must be a dictionary")

    if 'puzzle' not in config['input']:
        raise ConfigValidationError("Missing required field: 'input.puzzle'")

    puzzle_path = Path(config['input']['puzzle'])
    if not puzzle_path.exists():
        raise ConfigValidationError(f"Puzzle file not found: {puzzle_path}")

    geometry = config['input'].get('geometry', {})
    if not isinstance(geometry, dict):
        raise ConfigValidationError("'input.geometry' must be a dictionary")

    side = geometry.get('side', 8)
    if not isinstance(side, int) or side < 2:
        raise ConfigValidationError(f"'input.geometry.side' must be an integer >= 2, got: {side}")

    if mode == 'evolve':
        _validate_evolve_config(config)
    elif mode == 'evaluate':
        _validate_evaluate_config(config)


def _validate_evolve_config(config: Dict[str, Any]) -> None:
    """
    Validate evolve mode configuration.

    Args:
        config: Run configuration dictionary

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    if 'output' not in config:
        raise ConfigValidationError("Missing required field: 'output'")

    if not isinstance(config['output'], dict):
        raise ConfigValidationError("'output' must be a dictionary")

    if 'root' not in config['output']:
        raise ConfigValidationError("Missing required field: 'output.root'")

    save_threshold = config['output'].get('save_threshold', 25)
    if not isinstance(save_threshold, int) or save_threshold < 0:
        raise ConfigValidationError(
            f"'output.save_threshold' must be a non-negative integer, got: {save_threshold}"
        )

    if 'ga_config' in config:
        ga_config_path = Path(config['ga_config'])
        if not ga_config_path.exists():
            raise ConfigValidationError(f"GA config file not found: {ga_config_path}")

    evolution = config.get('evolution', {})
    if not isinstance(evolution, dict):
        raise ConfigValidationError("'evolution' must be a dictionary")

    seed = config.get('random_seed')
    if seed is not None and not isinstance(seed, int):
        raise ConfigValidationError(f"'random_seed' must be an integer, got: {seed}")


def _validate_evaluate_config(config: Dict[str, Any]) -> None:
    """
    Validate evaluate mode configuration.

    Args:
        config: Run configuration dictionary

    Raises:
        ConfigValidationError: If configuration is invalid
    """
    reference = config['input'].get('reference')
    if reference is not None and not Path(reference).exists():
        raise ConfigValidationError(f"Reference puzzle file not found: {reference}")


def run_from_config(config_path: Union[str, Path], overrides: Optional[Dict[str, Any]] = None) -> None:
    """
    Load, validate and execute a run configuration.

    Called by puzzle_cli.py. Top-level keys in overrides (e.g. 'random_seed'
    or 'verbose' from command-line flags) replace those read from the file
    before validation.

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigValidationError: If config is invalid
        Various exceptions from mode implementations
    """
    print(f"Run configuration: {config_path}")
    config = load_run_config(config_path)
    config.update(overrides or {})
    validate_run_config(config)

    # Imported here so validation errors surface without loading the engine
    from .orchestration import run_evaluate_mode, run_evolve_mode

    mode = config['mode']
    print(f"Mode: {mode}\n")
    if mode == 'evolve':
        run_evolve_mode(config)
    else:
        run_evaluate_mode(config)

    print("\nRun completed successfully!")
