"""Agent Oversight - asynchronous monitoring and graduated intervention for delegated agent sessions."""

__version__ = "0.1.0"

from agent_oversight.config import OversightConfig

__all__ = ["OversightConfig", "__version__"]
