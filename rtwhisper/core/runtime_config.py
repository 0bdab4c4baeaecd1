"""
Runtime configuration that can be modified during execution.
Thread-safe configuration store for per-request decoding options.
"""

import dataclasses
import logging
import threading
from dataclasses import dataclass
from typing import Callable

from . import config

logger = logging.getLogger(__name__)


@dataclass
class RuntimeConfig:
    """
    Runtime-tunable configuration values.
    These apply to the next transcription request.
    """

    # Prompt
    language: str = config.DEFAULT_LANGUAGE
    task: str = config.DEFAULT_TASK
    timestamps: bool = False

    # Output sequence capacity, prompt included
    max_tokens: int = config.MAX_TOKENS

    def validate(self) -> None:
        if self.language not in config.LANGUAGE_TOKENS:
            raise ValueError(f"Unsupported language: {self.language!r}")
        if self.task not in config.TASK_TOKENS:
            raise ValueError(f"Unsupported task: {self.task!r}")
        # room for the 4-token prompt and at least one generated token
        if self.max_tokens < 5:
            raise ValueError(f"max_tokens must be at least 5, got {self.max_tokens}")


class ConfigStore:
    """
    Thread-safe configuration store with change notifications.
    """

    def __init__(self, initial: RuntimeConfig | None = None):
        self._config = initial or RuntimeConfig()
        self._config.validate()
        self._lock = threading.RLock()
        self._listeners: list[Callable[[RuntimeConfig], None]] = []

    def get(self) -> RuntimeConfig:
        """Get a copy of the current configuration."""
        with self._lock:
            return dataclasses.replace(self._config)

    def update(self, **kwargs) -> None:
        """
        Update configuration values.

        Unknown keys are ignored. Invalid values raise ValueError and leave
        the configuration unchanged.

        Args:
            **kwargs: Configuration fields to update
        """
        with self._lock:
            known = {
                key: value
                for key, value in kwargs.items()
                if hasattr(self._config, key)
            }
            candidate = dataclasses.replace(self._config, **known)
            candidate.validate()
            self._config = candidate

            # Notify listeners
            config_copy = self.get()
            for listener in self._listeners:
                try:
                    listener(config_copy)
                except Exception:
                    logger.exception("Config listener failed")

    def add_listener(self, callback: Callable[[RuntimeConfig], None]) -> None:
        """Add a listener for configuration changes."""
        with self._lock:
            self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[RuntimeConfig], None]) -> None:
        """Remove a configuration change listener."""
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)


# Global config store instance
_config_store: ConfigStore | None = None


def get_config_store() -> ConfigStore:
    """Get the global configuration store."""
    global _config_store
    if _config_store is None:
        _config_store = ConfigStore()
    return _config_store
