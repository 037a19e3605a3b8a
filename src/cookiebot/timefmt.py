# Copyright (c) 2025-2026 provide.io llc
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Human readable durations for log output."""

from __future__ import annotations

_UNITS = (("h", 3600), ("m", 60), ("s", 1))


def as_readable(seconds: float) -> str:
    """Render a duration as ``"1h 59m 33s"``.

    Zero-valued units are skipped; sub-second remainders are dropped.
    """
    remaining = max(0, int(seconds))
    parts: list[str] = []
    for name, size in _UNITS:
        count, remaining = divmod(remaining, size)
        if count:
            parts.append(f"{count}{name}")
    return " ".join(parts) or "0s"
