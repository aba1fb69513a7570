"""Message-ref counter used to correlate requests with replies."""

from __future__ import annotations

# Largest integer the protocol's JSON peers can represent exactly.
MAX_REF = 2**53 - 1


class RefGenerator:
    """Monotonic, wrap-safe ref counter.

    Refs start at "1" and increase by one per call. When the counter sits at
    its ceiling the next ref is "0" rather than an out-of-range value.
    """

    def __init__(self, *, max_ref: int = MAX_REF) -> None:
        self.ref = 0
        self._max_ref = max_ref

    def next_ref(self) -> str:
        """Return the next ref as a string."""
        new_ref = min(self.ref + 1, self._max_ref)
        if new_ref == self.ref:
            self.ref = 0
        else:
            self.ref = new_ref
        return str(self.ref)
