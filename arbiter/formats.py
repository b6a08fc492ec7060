from .constants import SWISS, ROUND_ROBIN, FORMATS


def normalize_format(fmt) -> str:
    """Return the format tag, falling back to swiss for unknown values."""
    fmt = (fmt or '').strip().lower()
    return fmt if fmt in FORMATS else SWISS


def _log2_rounds(n: int) -> int:
    # ceil(log2(n)) for n >= 1, without float rounding
    return (n - 1).bit_length()


def max_rounds(fmt, participant_count: int) -> int:
    """Maximum number of rounds a format allows for ``participant_count`` players.

    Unknown formats use the swiss formula. This keeps tournaments created
    with a legacy or misspelled format playable instead of locking them.
    """
    if participant_count is None or participant_count < 2:
        return 0
    fmt = normalize_format(fmt)
    if fmt == ROUND_ROBIN:
        return participant_count - 1
    # swiss and elimination
    return _log2_rounds(participant_count)
