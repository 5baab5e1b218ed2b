from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .utils import load_json


@dataclass(frozen=True)
class EngineConfig:
    zone: dict[str, Any] = field(default_factory=dict)
    preprocess: dict[str, Any] = field(default_factory=dict)
    segment: dict[str, Any] = field(default_factory=dict)
    ocr: dict[str, Any] = field(default_factory=dict)

    @property
    def min_zone_height(self) -> int:
        return int(self.zone.get("min_height_px", 100))

    @property
    def upscale(self) -> int:
        return max(1, int(self.preprocess.get("upscale", 2)))

    @property
    def lift_px(self) -> int:
        return int(self.segment.get("lift_px", 5))

    @property
    def ocr_timeout(self) -> float | None:
        t = self.ocr.get("timeout_s", 30)
        return float(t) if t else None

    def with_ocr(self, **overrides: Any) -> "EngineConfig":
        ocr = dict(self.ocr)
        ocr.update({k: v for k, v in overrides.items() if v is not None})
        return EngineConfig(zone=self.zone, preprocess=self.preprocess, segment=self.segment, ocr=ocr)


def load_config(config_path: str | Path | None) -> EngineConfig:
    if config_path is None:
        return EngineConfig()
    data = load_json(config_path)
    return EngineConfig(
        zone=data.get("zone", {}),
        preprocess=data.get("preprocess", {}),
        segment=data.get("segment", {}),
        ocr=data.get("ocr", {}),
    )
