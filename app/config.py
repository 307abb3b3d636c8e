from __future__ import annotations

import os
from pathlib import Path
from typing import ClassVar

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import PydanticBaseSettingsSource, YamlConfigSettingsSource

from adapters.layout.calendar_grid import LayoutConfig
from domain.services.breakpoints import (
    DEFAULT_BREAKPOINT_RULES,
    BreakpointParameters,
    BreakpointRule,
)

DEFAULT_CONFIG_PATH = Path("config/layout.yaml")


class BreakpointRuleSettings(BaseModel):
    name: str = Field(..., min_length=1)
    min_width: float = Field(default=0, ge=0)
    slot_height: float = Field(default=72, gt=0)
    start_hour: int = Field(default=6, ge=0, le=23)
    end_hour: int = Field(default=22, ge=1, le=24)
    max_columns: int = Field(default=4, ge=1)
    max_events_per_day: int = Field(default=3, ge=0)
    compact_mode: bool = False
    show_time_labels: bool = True
    touch_friendly: bool = False
    pill_height: float = Field(default=20, gt=0)

    @field_validator("name", mode="before")
    @classmethod
    def normalize_name(cls, value: object) -> str:
        return str(value or "").strip().lower()

    def to_rule(self) -> BreakpointRule:
        return BreakpointRule(
            name=self.name,
            min_width=self.min_width,
            parameters=BreakpointParameters(
                slot_height=self.slot_height,
                start_hour=self.start_hour,
                end_hour=self.end_hour,
                max_columns=self.max_columns,
                max_events_per_day=self.max_events_per_day,
                compact_mode=self.compact_mode,
                show_time_labels=self.show_time_labels,
                touch_friendly=self.touch_friendly,
                pill_height=self.pill_height,
            ),
        )


def _default_breakpoint_settings() -> list[BreakpointRuleSettings]:
    return [
        BreakpointRuleSettings(
            name=rule.name, min_width=rule.min_width, **rule.parameters.to_dict()
        )
        for rule in DEFAULT_BREAKPOINT_RULES
    ]


class CacheSettings(BaseModel):
    ttl_seconds: float = Field(default=60.0, gt=0)
    max_entries: int = Field(default=128, ge=1)


class LayoutSettings(BaseModel):
    overlap_threshold: float = Field(default=0.1, ge=0, le=1)
    min_duration_minutes: int = Field(default=30, ge=0)
    pill_margin: float = Field(default=2.0, ge=0)
    slot_height: float | None = Field(default=None, gt=0)
    start_hour: int | None = Field(default=None, ge=0, le=23)
    end_hour: int | None = Field(default=None, ge=1, le=24)
    max_columns: int | None = Field(default=None, ge=1)
    max_display: int | None = Field(default=None, ge=0)
    default_view: str = "day-grid"
    breakpoints: list[BreakpointRuleSettings] = Field(default_factory=_default_breakpoint_settings)
    cache: CacheSettings = CacheSettings()

    @field_validator("default_view", mode="before")
    @classmethod
    def normalize_default_view(cls, value: object) -> str:
        view = str(value or "day-grid").strip().lower()
        if view not in {"day-grid", "month-pill"}:
            msg = f"layout.default_view must be day-grid or month-pill, got {view}"
            raise ValueError(msg)
        return view

    @model_validator(mode="after")
    def check_hour_range(self) -> LayoutSettings:
        # Configured hours replace every breakpoint's own, so each pairing must hold.
        for breakpoint in self.breakpoints:
            start = breakpoint.start_hour if self.start_hour is None else self.start_hour
            end = breakpoint.end_hour if self.end_hour is None else self.end_hour
            if start >= end:
                msg = (
                    f"layout.start_hour must be before layout.end_hour for breakpoint "
                    f"{breakpoint.name} ({start} >= {end})"
                )
                raise ValueError(msg)
        return self

    def to_layout_config(self) -> LayoutConfig:
        return LayoutConfig(
            overlap_threshold=self.overlap_threshold,
            min_duration_minutes=self.min_duration_minutes,
            pill_margin=self.pill_margin,
            slot_height=self.slot_height,
            start_hour=self.start_hour,
            end_hour=self.end_hour,
            max_columns=self.max_columns,
            max_display=self.max_display,
        )

    def to_breakpoint_rules(self) -> list[BreakpointRule]:
        rules = sorted(self.breakpoints, key=lambda item: item.min_width)
        return [item.to_rule() for item in rules]


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TCAL_", env_nested_delimiter="__")

    title: str = "Touch Calendar Layout"
    layout: LayoutSettings = LayoutSettings()

    _yaml_path: ClassVar[Path | None] = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources: list[PydanticBaseSettingsSource] = [
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        ]
        if cls._yaml_path:
            sources.append(YamlConfigSettingsSource(settings_cls, yaml_file=cls._yaml_path))
        return tuple(sources)


def load_settings(config_path: Path | None = None) -> AppSettings:
    env_path = os.getenv("TCAL_CONFIG_PATH")
    resolved_path: Path | None = None

    if config_path is not None:
        resolved_path = config_path
    elif env_path:
        resolved_path = Path(env_path)
    elif DEFAULT_CONFIG_PATH.exists():
        resolved_path = DEFAULT_CONFIG_PATH

    previous = AppSettings._yaml_path
    try:
        if resolved_path is not None:
            if not resolved_path.exists():
                msg = f"Config file not found: {resolved_path}"
                raise FileNotFoundError(msg)
            AppSettings._yaml_path = resolved_path
        return AppSettings()
    finally:
        AppSettings._yaml_path = previous
