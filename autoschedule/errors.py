"""Errors raised by the scheduling engine."""


class InputError(ValueError):
    """Malformed input: missing ids, inverted intervals, unparseable times.

    Aborts the single operation; callers decide whether to re-prompt.
    """
