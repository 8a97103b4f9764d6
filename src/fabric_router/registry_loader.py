import logging
from pathlib import Path

from pydantic import ValidationError
from pydantic_yaml import parse_yaml_file_as

from fabric_router.exceptions import ConfigurationError
from fabric_router.model.registry import AgentRegistry

logger = logging.getLogger(__name__)


def load_registry(config_path: str | Path) -> AgentRegistry:
    """
    Load the agent registry document.

    The document may be JSON or YAML; JSON is parsed as YAML.

    Args:
        config_path: Path to the registry document

    Returns:
        Validated AgentRegistry

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    path = Path(config_path)
    if not path.is_file():
        raise ConfigurationError(f"Fabric agents configuration not found: {path}")

    try:
        registry = parse_yaml_file_as(AgentRegistry, path)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid agent registry {path}: {e}") from e
    except Exception as e:
        raise ConfigurationError(f"Failed to parse agent registry {path}: {e}") from e

    logger.info(
        f"Loaded {len(registry.agents)} Fabric Data Agents "
        f"({len(registry.enabled_agents())} enabled) from {path}"
    )
    return registry
