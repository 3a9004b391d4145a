"""YAML file operations service."""

import logging
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict

import yaml

from fastcert.errors import FastcertIOError

logger = logging.getLogger("fastcert")


class YAMLService:
    """Service for YAML file operations."""

    @staticmethod
    def load_yaml(file_path: Path) -> Dict[str, Any]:
        """
        Load YAML file and return as dictionary.

        Args:
            file_path: Path to YAML file

        Returns:
            Parsed YAML content as dictionary

        Raises:
            FileNotFoundError: If file doesn't exist
            FastcertIOError: If file is not valid YAML or not a mapping
        """
        if not file_path.exists():
            raise FileNotFoundError(f"YAML file not found: {file_path}")

        with open(file_path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                logger.error(f"Error parsing YAML file {file_path}: {e}")
                raise FastcertIOError(f"Invalid YAML in {file_path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise FastcertIOError(f"Expected a mapping at the top of {file_path}")
        logger.debug(f"Loaded YAML from: {file_path}")
        return data

    @staticmethod
    def dump_yaml(data: Dict[str, Any]) -> str:
        """
        Render data as block-style YAML.

        Datetimes become ISO 8601 strings and enums their values.

        Args:
            data: Data to render

        Returns:
            YAML text
        """
        return yaml.safe_dump(
            YAMLService._format_nested_dict(data),
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False,
        )

    @staticmethod
    def _format_nested_dict(data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Recursively format nested dictionaries, converting datetime and Enum objects.

        Args:
            data: Dictionary to format

        Returns:
            Formatted dictionary
        """
        return {key: YAMLService._format_value(value) for key, value in data.items()}

    @staticmethod
    def _format_value(value: Any) -> Any:
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, Path):
            return str(value)
        if isinstance(value, dict):
            return YAMLService._format_nested_dict(value)
        if isinstance(value, (list, tuple)):
            return [YAMLService._format_value(item) for item in value]
        return value
