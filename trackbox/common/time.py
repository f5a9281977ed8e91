"""Common time utilities."""

from __future__ import annotations

import datetime as dt


def from_epoch_seconds(seconds: int) -> dt.datetime:
    """Interpret ``seconds`` since the Unix epoch as an aware UTC datetime.

    Raises
    ------
    ValueError
        If ``seconds`` falls outside the range the platform can represent.

    """
    try:
        return dt.datetime.fromtimestamp(seconds, dt.UTC)
    except (OverflowError, OSError) as exc:
        msg = f"epoch seconds {seconds} out of range"
        raise ValueError(msg) from exc
