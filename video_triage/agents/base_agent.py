"""
Base Agent - Shared scaffolding for the triage pipeline components
"""
from abc import ABC, abstractmethod
from typing import Any, Dict
import logging


class BaseAgent(ABC):
    """
    Base class for the pipeline components.
    Every component can be driven through execute() with a context dict
    and logs under ``agent.<name>`` with a ``[name]`` prefix.
    """

    def __init__(self, name: str, description: str = ""):
        """
        Initialize the component.

        Args:
            name: Unique component name, used as the logger suffix
            description: What the component does
        """
        self.name = name
        self.description = description
        self.logger = logging.getLogger(f"agent.{name}")

    @abstractmethod
    async def execute(self, context: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run the component on a context dict.

        Args:
            context: Inputs keyed by name

        Returns:
            Outputs keyed by name
        """
        pass

    def _format(self, message: str, fields: Dict[str, Any]) -> str:
        if fields:
            message = f"{message} (" + ", ".join(f"{k}={v}" for k, v in fields.items()) + ")"
        return f"[{self.name}] {message}"

    def log_info(self, message: str, **fields):
        """Log an info message"""
        self.logger.info(self._format(message, fields))

    def log_warning(self, message: str, **fields):
        """Log a warning message"""
        self.logger.warning(self._format(message, fields))

    def log_error(self, message: str, **fields):
        """Log an error message"""
        self.logger.error(self._format(message, fields))

    def log_debug(self, message: str, **fields):
        """Log a debug message"""
        self.logger.debug(self._format(message, fields))

    def __repr__(self):
        return f"<{self.__class__.__name__}(name='{self.name}')>"
