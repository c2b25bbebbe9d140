from __future__ import annotations

import dataclasses
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from offset_core.domain.models import NotFoundError

CONFIG_FILENAME = "carbon_config.json"


@dataclasses.dataclass(frozen=True)
class OffsetSettings:
    data_dir: Path
    currency: str = "USD"
    diversity_factor: float = 0.3
    log_level: str = "INFO"
    log_json: bool = False

    @property
    def data_file(self) -> Path:
        return self.data_dir / CONFIG_FILENAME


def default_settings() -> OffsetSettings:
    return OffsetSettings(
        data_dir=Path(os.environ.get("CARBON_DATA_DIR") or Path.cwd() / ".carbon_data"),
        currency=os.environ.get("CARBON_CURRENCY", "USD"),
        log_level=os.environ.get("CARBON_LOG_LEVEL", "INFO"),
    )


def load_settings(path: Optional[str | Path] = None) -> OffsetSettings:
    """Environment defaults, overridden by an optional JSON settings file."""
    base = default_settings()
    if path is None:
        return base
    data = _read_json(path)
    return OffsetSettings(
        data_dir=Path(data.get("data_dir", base.data_dir)),
        currency=str(data.get("currency", base.currency)),
        diversity_factor=float(data.get("diversity_factor", base.diversity_factor)),
        log_level=str(data.get("log_level", base.log_level)),
        log_json=bool(data.get("log_json", base.log_json)),
    )


def _read_json(path: str | Path) -> Dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise NotFoundError(f"Settings file not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Failed to parse settings file {path}: {exc}") from exc
