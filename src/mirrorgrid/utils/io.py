"""I/O utilities for profile and configuration documents."""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar, Union

import yaml
from pydantic import BaseModel

ModelT = TypeVar("ModelT", bound=BaseModel)

SUPPORTED_FILE_TYPES = ("json", "yaml", "yml")


def _resolve_file_type(file_path: Path, file_type: Optional[str]) -> str:
    if file_type is None:
        file_type = file_path.suffix.lower().lstrip('.')
    if file_type not in SUPPORTED_FILE_TYPES:
        raise ValueError(f"Unsupported file type: {file_type}")
    return file_type


def load_data(
    file_path: Union[str, Path],
    file_type: Optional[str] = None,
) -> Any:
    """
    Load a document from JSON or YAML.

    Args:
        file_path: Path to the data file
        file_type: Type of file (json, yaml). Inferred from the suffix when omitted.

    Returns:
        Loaded data
    """
    file_path = Path(file_path)
    file_type = _resolve_file_type(file_path, file_type)

    with open(file_path, 'r') as f:
        if file_type == 'json':
            return json.load(f)
        return yaml.safe_load(f)


def save_data(
    data: Any,
    file_path: Union[str, Path],
    file_type: Optional[str] = None,
    **kwargs
) -> None:
    """
    Save a document as JSON or YAML.

    Args:
        data: Data to save
        file_path: Path to save the data
        file_type: Type of file (json, yaml). Inferred from the suffix when omitted.
        **kwargs: Additional arguments for the serializer
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_type = _resolve_file_type(file_path, file_type)

    with open(file_path, 'w') as f:
        if file_type == 'json':
            json.dump(data, f, indent=2, **kwargs)
        else:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False, **kwargs)


def load_model_document(
    file_path: Union[str, Path],
    model: Type[ModelT],
    file_type: Optional[str] = None,
) -> ModelT:
    """Load a document and validate it against a pydantic model."""
    return model.model_validate(load_data(file_path, file_type=file_type))


def load_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to the configuration file

    Returns:
        Configuration dictionary
    """
    return load_data(config_path, file_type='yaml') or {}


def save_config(config: Dict[str, Any], config_path: Union[str, Path]) -> None:
    """
    Save configuration to YAML file.

    Args:
        config: Configuration dictionary
        config_path: Path to save the configuration
    """
    save_data(config, config_path, file_type='yaml')
