"""Uploader configuration"""

import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union
import logging

import psutil
import yaml

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

MB = 1024 * 1024


@dataclass
class UploaderConfig:
    """Uploader configuration, immutable for the life of a session"""
    temp_file_path: str = ""
    upload_url: str = ""
    verify_url: str = ""
    merge_url: str = ""
    file_name: str = ""
    size: int = 0
    chunk_size: int = 5 * MB
    max_concurrency: int = 5
    max_memory: int = 100 * MB
    test_chunks: bool = True
    query: Dict[str, Any] = field(default_factory=dict)
    header: Dict[str, str] = field(default_factory=dict)
    generate_identifier: Optional[Callable[[], str]] = None
    app_id: str = "chunkup"
    max_retries: int = 0
    auto_memory: bool = False

    def __post_init__(self):
        if not self.size and self.temp_file_path and os.path.isfile(self.temp_file_path):
            self.size = os.path.getsize(self.temp_file_path)
        if not self.file_name and self.temp_file_path:
            self.file_name = Path(self.temp_file_path).name
        if self.auto_memory:
            available = psutil.virtual_memory().available
            if available < self.max_memory:
                logger.info(f"Capping max_memory to available memory: {available} bytes")
                self.max_memory = available

    @property
    def total_chunks(self) -> int:
        return -(-self.size // self.chunk_size)

    @property
    def max_load_chunks(self) -> int:
        """Read-ahead depth derived from the memory budget"""
        return max(1, self.max_memory // self.chunk_size)

    def validate(self):
        """Raise ConfigError when the configuration cannot drive an upload"""
        if self.size <= 0:
            raise ConfigError(f"size must be positive, got {self.size}")
        if self.chunk_size <= 0:
            raise ConfigError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.max_concurrency <= 0:
            raise ConfigError(f"max_concurrency must be positive, got {self.max_concurrency}")
        if self.max_retries < 0:
            raise ConfigError(f"max_retries cannot be negative, got {self.max_retries}")
        if not self.temp_file_path:
            raise ConfigError("temp_file_path is required")
        if not self.upload_url:
            raise ConfigError("upload_url is required")
        if self.test_chunks and not self.verify_url:
            raise ConfigError("verify_url is required when test_chunks is enabled")
        if not self.merge_url:
            raise ConfigError("merge_url is required")
        if self.generate_identifier is not None and not callable(self.generate_identifier):
            raise ConfigError("generate_identifier must be callable")


def _snake_case(key: str) -> str:
    return re.sub(r'(?<!^)(?=[A-Z])', '_', key).lower()


def merge_options(base: Dict[str, Any], options: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay options on base, accepting camelCase keys"""
    known = {f.name for f in fields(UploaderConfig)}
    merged = dict(base)
    for key, value in options.items():
        name = _snake_case(key)
        if name not in known:
            raise ConfigError(f"Unknown configuration option: {key}")
        if value is not None:
            merged[name] = value
    return merged


def load_config(path: Optional[Union[str, Path]] = None, **overrides) -> UploaderConfig:
    """Load configuration from a YAML file and apply keyword overrides"""
    data: Dict[str, Any] = {}

    if path is not None:
        path = Path(path)
        try:
            with open(path, 'r') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load configuration {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Configuration {path} must be a mapping")
        logger.debug(f"Loaded configuration from {path}")

    return UploaderConfig(**merge_options(merge_options({}, data), overrides))
