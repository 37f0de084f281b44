# =============================
# Error taxonomy
# =============================
"""
Recoverable vs. fatal failures of the effect pipeline.

``AssetDecodeError`` is recovered locally (fallback tint).  Everything
else is surfaced to the host: a missing picture or a broken graph must
never turn into undefined output on screen.
"""


class EffectError(Exception):
    """Base class for all effect pipeline errors."""


class AssetDecodeError(EffectError):
    """Image bytes are malformed or unavailable."""


class TextureLoadError(EffectError):
    """The texture pair itself could not be loaded; nothing to display."""


class GraphBuildError(EffectError):
    """Invalid graph structure or variant parameters."""


class UnknownVariantError(EffectError, KeyError):
    """Effect id or asset set outside the fixed catalogue."""

    def __str__(self):
        # KeyError would repr() the message
        return Exception.__str__(self)
