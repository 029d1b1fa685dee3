"""Error types raised at the engine's call boundary."""


class InputInvalid(ValueError):
    """Raised when caller-supplied input cannot produce a consistent result.

    Covers non-positive quantities, waste factors outside 0–100, duplicate
    request or catalog keys, and empty/duplicate route shop sets.  Data gaps
    (missing listings, missing coordinates) and infeasible plans are *not*
    errors; they are reported in the returned data.
    """
