"""
Parser configuration with resource limits.

These limits keep pathological inputs from exhausting memory. The
defaults are generous for normal usage; plans past the node limit are
truncated (with a warning) rather than rejected.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ParserConfig(BaseModel):
    """
    Configuration for the plan parsers.

    Attributes:
        max_file_size_mb: Maximum file size read by parse_plan_file().
        max_input_chars: Longer inputs are cut to this many characters.
        max_nodes: Plan rows beyond this count are dropped.

    Example:
        # Stricter limits for untrusted input
        config = ParserConfig(max_file_size_mb=5, max_nodes=2_000)
    """

    model_config = ConfigDict(frozen=True)

    max_file_size_mb: float = Field(
        default=50.0,
        gt=0,
        description="Maximum file size in megabytes",
    )

    max_input_chars: int = Field(
        default=20_000_000,
        gt=0,
        description="Maximum number of characters parsed from one input",
    )

    max_nodes: int = Field(
        default=20_000,
        gt=0,
        description="Maximum number of plan nodes kept",
    )


# Sensible defaults for different use cases
DEFAULT_CONFIG = ParserConfig()

# Stricter limits for web API / untrusted input
STRICT_CONFIG = ParserConfig(
    max_file_size_mb=5.0,
    max_input_chars=2_000_000,
    max_nodes=2_000,
)
