"""Reference-fact providers and validation for specification sources."""

from concord.reference.validator import (
    ENERGY_CONSERVATION_LAWS,
    ReferenceFactProvider,
    ReferenceFactValidator,
    StaticReferenceFacts,
    band_severity,
    relative_variance,
)

__all__ = [
    "ENERGY_CONSERVATION_LAWS",
    "ReferenceFactProvider",
    "ReferenceFactValidator",
    "StaticReferenceFacts",
    "band_severity",
    "relative_variance",
]
