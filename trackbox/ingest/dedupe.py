"""Redelivery filtering based on the transport's duplicate flag.

No state is kept between messages. A delivery is skipped only when the broker
marked it as a redelivery, so a message the broker re-sends without that flag
is processed again.
"""

from __future__ import annotations

import enum


class DeliveryDecision(enum.StrEnum):
    """Whether a delivery should enter the rest of the pipeline."""

    PROCEED = "proceed"
    SKIP = "skip"


def check_delivery(
    *, is_duplicate: bool, message_id: int | str | None = None
) -> DeliveryDecision:
    """Return ``SKIP`` for broker-flagged redeliveries, else ``PROCEED``.

    ``message_id`` is accepted so call sites read naturally alongside the
    logging that follows a skip; it does not affect the decision.
    """
    del message_id
    return DeliveryDecision.SKIP if is_duplicate else DeliveryDecision.PROCEED
