"""
MEMORYMESH CONFIG - Settings for the store, the logger and the CLI

Values resolve in this order (first wins):
    1. explicit arguments (CLI flags)
    2. environment: MEMORYMESH_MEMORY_FILE, MEMORYMESH_LOG_LEVEL,
       MEMORYMESH_SCHEMAS_DIR
    3. the [memorymesh] table of memorymesh.toml
    4. defaults below

Usage:
    from infrastructure.config import load_config

    config = load_config(memory_file=args.memory_file)
    storage = JsonLineStorage(config.memory_file)

Example memorymesh.toml:
    [memorymesh]
    memory_file = "data/memory.jsonl"
    log_level = "INFO"
    mutation_log_enabled = true
    mutation_log_path = "data/mutations.jsonl"
    schemas_dir = "data/schemas"
"""
import os
import tomllib
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional

import msgspec


DEFAULT_CONFIG_FILE = "memorymesh.toml"
DEFAULT_MEMORY_FILE = "./data/memory.jsonl"
DEFAULT_SCHEMAS_DIR = "./data/schemas"

ENV_MEMORY_FILE = "MEMORYMESH_MEMORY_FILE"
ENV_LOG_LEVEL = "MEMORYMESH_LOG_LEVEL"
ENV_CONFIG_FILE = "MEMORYMESH_CONFIG"
ENV_SCHEMAS_DIR = "MEMORYMESH_SCHEMAS_DIR"


class MemoryMeshConfig(msgspec.Struct, frozen=True, kw_only=True):
    """Resolved configuration. Immutable once loaded."""
    memory_file: str = DEFAULT_MEMORY_FILE
    log_level: str = "WARNING"
    mutation_log_enabled: bool = False
    mutation_log_path: str = "./data/mutations.jsonl"
    mutation_buffer_size: int = 1000
    # *.schema.json files declaring typed node kinds; missing means none
    schemas_dir: str = DEFAULT_SCHEMAS_DIR
    # Listed for compatibility with existing files; records carry no version.
    supported_schema_versions: List[str] = msgspec.field(
        default_factory=lambda: ["0.1", "0.2"]
    )
    server_name: str = "memorymesh"
    server_version: str = "0.2.0"


def load_toml_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load the [memorymesh] table from a TOML file.

    Args:
        config_path: File to read. Defaults to $MEMORYMESH_CONFIG, then
            ./memorymesh.toml; a missing default file is not an error.

    Returns:
        Dict with the table's keys, or {} on any failure
    """
    if config_path is None and os.getenv(ENV_CONFIG_FILE):
        config_path = Path(os.getenv(ENV_CONFIG_FILE))
    explicit = config_path is not None
    path = Path(config_path) if explicit else Path.cwd() / DEFAULT_CONFIG_FILE

    if not path.exists():
        if explicit:
            warnings.warn(f"Config file not found: {path}")
        return {}

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        warnings.warn(f"Failed to load config from TOML: {e}")
        return {}

    section = data.get("memorymesh", {})
    if not isinstance(section, dict):
        warnings.warn(f"Ignoring [memorymesh] in {path}: not a table")
        return {}
    return section


def load_config(
    config_path: Optional[Path] = None,
    memory_file: Optional[str] = None,
    log_level: Optional[str] = None,
    schemas_dir: Optional[str] = None,
) -> MemoryMeshConfig:
    """
    Build a MemoryMeshConfig from arguments, environment, TOML and defaults.

    A TOML table with wrongly typed values is reported with a warning and
    ignored as a whole. Unknown keys are ignored.
    """
    values = load_toml_config(config_path)

    try:
        config = msgspec.convert(values, type=MemoryMeshConfig)
    except msgspec.ValidationError as e:
        warnings.warn(f"Invalid config, using defaults: {e}")
        config = MemoryMeshConfig()

    overrides: Dict[str, Any] = {}

    env_memory_file = os.getenv(ENV_MEMORY_FILE)
    env_log_level = os.getenv(ENV_LOG_LEVEL)
    env_schemas_dir = os.getenv(ENV_SCHEMAS_DIR)
    if env_memory_file:
        overrides["memory_file"] = env_memory_file
    if env_log_level:
        overrides["log_level"] = env_log_level
    if env_schemas_dir:
        overrides["schemas_dir"] = env_schemas_dir

    if memory_file:
        overrides["memory_file"] = memory_file
    if log_level:
        overrides["log_level"] = log_level
    if schemas_dir:
        overrides["schemas_dir"] = schemas_dir

    if overrides:
        config = msgspec.structs.replace(config, **overrides)
    return config
