"""Repair policy presets."""

from dataclasses import dataclass, replace

from meal_planner.errors import InvalidRequestError


@dataclass(frozen=True)
class PlanConfig:
    """Tunable tolerance and repair limits for a generation run."""

    tolerance_percent: float = 20
    scale_up_max: float = 1.5
    scale_down_max: float = 0.5
    min_scale_threshold: float = 0.05
    max_regenerations_per_day: int = 1
    enable_auto_fix: bool = True
    enable_precision_mode: bool = False
    min_first_pass_quality_rate: float | None = None
    min_auto_fix_success_rate: float | None = None

    def __post_init__(self) -> None:
        if not self.scale_down_max < 1 <= self.scale_up_max:
            raise InvalidRequestError(
                "scale_down_max must be below 1 and scale_up_max at least 1 "
                f"(got {self.scale_down_max} and {self.scale_up_max})."
            )
        if self.tolerance_percent < 0 or self.max_regenerations_per_day < 0:
            raise InvalidRequestError("Tolerance and regeneration limits cannot be negative.")

    @classmethod
    def from_preset(cls, name: str = "default", **overrides: object) -> "PlanConfig":
        """Return a named preset with optional field overrides merged on top."""
        preset = PRESETS.get(name.lower())
        if preset is None:
            raise InvalidRequestError(
                f"Unknown plan preset '{name}'. Use one of: {', '.join(PRESETS)}."
            )
        cleaned = {key: value for key, value in overrides.items() if value is not None}
        return replace(preset, **cleaned) if cleaned else preset


PRESETS: dict[str, PlanConfig] = {
    "default": PlanConfig(),
    "strict": PlanConfig(
        tolerance_percent=10,
        scale_up_max=1.3,
        scale_down_max=0.7,
        max_regenerations_per_day=2,
    ),
    "relaxed": PlanConfig(
        tolerance_percent=30,
        scale_up_max=2.0,
        scale_down_max=0.3,
        max_regenerations_per_day=0,
    ),
    "precision": PlanConfig(
        tolerance_percent=10,
        scale_up_max=1.3,
        scale_down_max=0.7,
        min_scale_threshold=0.03,
        max_regenerations_per_day=2,
        enable_precision_mode=True,
    ),
}
