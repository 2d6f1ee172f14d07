"""Configuration for the support-type meaningfulness engine.

This module defines the policy switches that decide how operation-time
diagnostics are treated, and the tolerances used by geometric checks.

Includes configuration for:
- Engine policy and tolerances (EngineConfig with SUPPORT_ prefix)
- Kriging backend discretisation (KrigingConfig with KRIGING_ prefix)

Configuration can be overridden via:
1. Environment variables (e.g., SUPPORT_WARNINGS_AS_ERRORS=true, KRIGING_BLOCK_DISCRETISATION=8)
2. .env file in the current directory
3. Default values in code
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from supportkit.models.enums import DiagnosticCode, WindowInference


class KrigingConfig(BaseSettings):
    """Configuration for the default kriging backend.

    Can be overridden via environment variables with KRIGING_ prefix:
    - KRIGING_BLOCK_DISCRETISATION
    - KRIGING_MAX_POINTS

    Attributes:
        block_discretisation: Points per block side used to approximate block support
        max_points: Largest number of observations accepted by a single solve
    """

    model_config = SettingsConfigDict(
        env_prefix="KRIGING_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    block_discretisation: int = Field(
        default=5, ge=1, le=50, description="Discretisation points per block side"
    )
    max_points: int = Field(
        default=2000, ge=2, description="Maximum observations in one kriging system"
    )


class EngineConfig(BaseSettings):
    """Main configuration for meaningfulness checking.

    Can be overridden via environment variables with SUPPORT_ prefix:
    - SUPPORT_WARNINGS_AS_ERRORS
    - SUPPORT_FATAL_CODES (JSON list, e.g. '["MeanOfCounts"]')
    - SUPPORT_RAISE_ON_REFUSE
    - SUPPORT_REFUSE_BEYOND_WINDOW
    - SUPPORT_CONTAINMENT_TOLERANCE
    - SUPPORT_COINCIDENCE_TOLERANCE
    - SUPPORT_PRECISION_GRID_SIZE
    - SUPPORT_WINDOW_INFERENCE
    - SUPPORT_DEGENERATE_WINDOW_MARGIN
    - KRIGING_* variables for nested kriging configuration

    Attributes:
        warnings_as_errors: Escalate every advisory diagnostic to an exception
        fatal_codes: Diagnostic codes escalated to an exception
        raise_on_refuse: Raise OperationRefused instead of returning an empty result
        refuse_beyond_window: Treat extensive entity aggregation beyond the window as a refusal
        containment_tolerance: Distance by which windows are grown for containment tests
        coincidence_tolerance: Distance within which a query point hits a sample location
        precision_grid_size: Grid size used when comparing unit geometries for identity
        window_inference: Strategy used to derive an implicit window
        degenerate_window_margin: Buffer applied when an inferred window has no area
        kriging: Kriging backend configuration
    """

    model_config = SettingsConfigDict(
        env_prefix="SUPPORT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    warnings_as_errors: bool = Field(
        default=False, description="Escalate all advisory diagnostics to errors"
    )
    fatal_codes: list[DiagnosticCode] = Field(
        default_factory=list, description="Diagnostic codes treated as fatal"
    )
    raise_on_refuse: bool = Field(
        default=False, description="Raise instead of returning no result on refusal"
    )
    refuse_beyond_window: bool = Field(
        default=False,
        description="Refuse (rather than warn) when summing entities beyond their window",
    )
    containment_tolerance: float = Field(
        default=1e-9, ge=0, description="Tolerance for window containment tests"
    )
    coincidence_tolerance: float = Field(
        default=1e-9, ge=0, description="Tolerance for point-on-sample coincidence"
    )
    precision_grid_size: float = Field(
        default=1e-6, gt=0, description="Precision grid for geometry identity checks"
    )
    window_inference: WindowInference = Field(
        default=WindowInference.CONVEX_HULL, description="Implicit window strategy"
    )
    degenerate_window_margin: float = Field(
        default=1e-6, gt=0, description="Buffer for windows inferred from degenerate geometry"
    )
    kriging: KrigingConfig = Field(
        default_factory=KrigingConfig, description="Kriging backend configuration"
    )

    @field_validator("fatal_codes", mode="before")
    @classmethod
    def split_codes(cls, v):
        if isinstance(v, str):
            return [code.strip() for code in v.split(",") if code.strip()]
        return v

    def is_fatal(self, code: DiagnosticCode) -> bool:
        """Check whether an advisory diagnostic code should be escalated.

        Returns:
            True if warnings_as_errors is set or the code is listed in fatal_codes
        """
        return self.warnings_as_errors or code in self.fatal_codes


DEFAULT_CONFIG = EngineConfig()
