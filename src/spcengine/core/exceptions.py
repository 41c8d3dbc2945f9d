"""Error taxonomy for the SPC computation engine.

All errors derive from ValueError so callers that already guard numeric
input with ``except ValueError`` keep working. Degenerate distributions
(zero sigma, zero MAD) are not errors; they resolve to documented
sentinel values instead.
"""


class SPCError(ValueError):
    """Base class for all engine validation errors."""


class EmptyInputError(SPCError):
    """Operation requires at least one element but received none."""


class InvalidConfigError(SPCError):
    """A parameter is outside its valid domain (lambda, sigma, L, k, h, ...)."""


class InvalidSpecError(SPCError):
    """Specification limits are inconsistent (USL must exceed LSL)."""
