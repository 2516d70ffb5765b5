"""
Utility Functions

Helper functions for configuration, logging, and I/O.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from ..errors import ConfigurationError

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def load_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to YAML config file

    Returns:
        Configuration dictionary
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)

    if config is not None and not isinstance(config, dict):
        raise ConfigurationError(f"Config file must hold a mapping: {config_path}")

    return config or {}


def save_config(config: Dict[str, Any],
                config_path: Union[str, Path]) -> None:
    """Save configuration to YAML file."""
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, 'w') as f:
        yaml.dump(config, f, default_flow_style=False)


def save_results(results: Dict[str, Any],
                 output_dir: Union[str, Path],
                 name: str = "results",
                 formats: tuple = ('json', 'csv')) -> Dict[str, Path]:
    """
    Save results to multiple formats.

    Args:
        results: Results dictionary
        output_dir: Output directory
        name: Base filename
        formats: Output formats ('json', 'csv', 'yaml')

    Returns:
        Dictionary of format -> output path
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    base_name = f"{name}_{timestamp}"

    output_paths = {}

    if 'json' in formats:
        json_path = output_dir / f"{base_name}.json"
        with open(json_path, 'w') as f:
            json.dump(results, f, indent=2, default=str)
        output_paths['json'] = json_path

    if 'yaml' in formats:
        yaml_path = output_dir / f"{base_name}.yaml"
        with open(yaml_path, 'w') as f:
            yaml.safe_dump(results, f, default_flow_style=False)
        output_paths['yaml'] = yaml_path

    if 'csv' in formats:
        csv_path = output_dir / f"{base_name}.csv"
        _save_results_csv(results, csv_path)
        output_paths['csv'] = csv_path

    return output_paths


def _save_results_csv(results: Dict[str, Any], filepath: Path) -> None:
    """
    Save results to CSV format.

    Scalars, ``stats`` and ``config`` become ``key,value`` rows. The
    ``per_branch`` mapping and the ``table`` rows each follow as their own
    block with a header row, separated by a blank line.
    """
    import csv

    with open(filepath, 'w', newline='', encoding='utf-8') as f:
        writer = csv.writer(f)

        blocks = []
        for key, value in results.items():
            if key == 'per_branch' and isinstance(value, dict):
                blocks.append([{'address': pc, **stats} for pc, stats in value.items()])
            elif isinstance(value, list) and all(isinstance(v, dict) for v in value):
                blocks.append(value)
            elif isinstance(value, dict):
                for sub_key, sub_value in value.items():
                    writer.writerow([f"{key}.{sub_key}", sub_value])
            else:
                writer.writerow([key, value])

        for rows in blocks:
            if not rows:
                continue
            writer.writerow([])
            columns = list(rows[0])
            writer.writerow(columns)
            for row in rows:
                writer.writerow([row.get(col) for col in columns])


def setup_logging(level: str = "INFO",
                  log_file: Optional[Union[str, Path]] = None) -> logging.Logger:
    """
    Setup logging for the ``bhtsim`` logger hierarchy.

    Calling it again replaces the handlers from the previous call instead
    of stacking duplicates.

    Args:
        level: Logging level name
        log_file: Optional log file path

    Returns:
        Logger instance

    Raises:
        ConfigurationError: If the level name is unknown
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ConfigurationError(f"Unknown log level: {level}")

    logger = logging.getLogger("bhtsim")
    logger.setLevel(numeric_level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    handlers = [logging.StreamHandler()]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    for handler in handlers:
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
