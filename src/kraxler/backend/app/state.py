"""Per-application collaborators shared by the blueprints."""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from kraxler.backend.config.loader import load_config
from kraxler.backend.config.schema import KraxlerConfig
from kraxler.backend.services.anomaly_detection import AnomalyDetector

EXTENSION_KEY = "kraxler"


@dataclass(frozen=True)
class AppState:
    detector: AnomalyDetector
    config: KraxlerConfig | None = None

    def current_config(self) -> KraxlerConfig:
        """Return the injected configuration or the cached one from disk."""

        if self.config is not None:
            return self.config
        return load_config()


def get_state() -> AppState:
    return current_app.extensions[EXTENSION_KEY]


__all__ = ["AppState", "EXTENSION_KEY", "get_state"]
