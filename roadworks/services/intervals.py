"""Range and lookup-key normalisation shared by the whole engine."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Tuple, Union


def to_finite(value, default: float = 0.0) -> float:
    """Coerce ``value`` to a finite float, using ``default`` otherwise."""

    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def is_finite_number(value) -> bool:
    if value is None or isinstance(value, bool):
        return False
    if isinstance(value, str) and not value.strip():
        return False
    try:
        return math.isfinite(float(value))
    except (TypeError, ValueError):
        return False


def normalize_range(start, end) -> Tuple[float, float]:
    """Return ``(lo, hi)``; non-finite bounds count as ``0``."""

    lo = to_finite(start)
    hi = to_finite(end)
    return (lo, hi) if lo <= hi else (hi, lo)


def ranges_overlap(a_start, a_end, b_start, b_end) -> bool:
    """Closed-range overlap; touching endpoints overlap."""

    a_lo, a_hi = normalize_range(a_start, a_end)
    b_lo, b_hi = normalize_range(b_start, b_end)
    return not (a_hi < b_lo or a_lo > b_hi)


def normalize_label(value) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def format_pk(value: float) -> str:
    """Canonical number text: ``400`` and ``400.0`` render the same."""

    number = to_finite(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


def format_chainage(value: float) -> str:
    """Human chainage label, e.g. ``PK1+250``."""

    number = to_finite(value)
    km = int(number // 1000)
    metres = int(round(number % 1000))
    return f"PK{km}+{metres:03d}"


# ---------------------------------------------------------------------------
# Identity keys
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ById:
    value: str

    @property
    def token(self) -> str:
        return f"id:{self.value}"


@dataclass(frozen=True)
class ByName:
    normalized: str

    @property
    def token(self) -> str:
        return f"name:{self.normalized}"


@dataclass(frozen=True)
class _Unknown:
    @property
    def token(self) -> str:
        return "unknown"


UNKNOWN = _Unknown()

Identity = Union[ById, ByName, _Unknown]


def _has_text(value) -> bool:
    return value is not None and str(value).strip() != ""


def identity_for(entity_id=None, name: Optional[str] = None) -> Identity:
    if _has_text(entity_id):
        return ById(str(entity_id).strip())
    if _has_text(name):
        return ByName(normalize_label(name))
    return UNKNOWN


def build_status_base_key(
    *,
    phase_id=None,
    phase_name: Optional[str] = None,
    layer_id=None,
    layer_name: Optional[str] = None,
    check_id=None,
    check_name: Optional[str] = None,
    start_pk=0.0,
    end_pk=0.0,
) -> str:
    start, end = normalize_range(start_pk, end_pk)
    return "|".join(
        [
            identity_for(phase_id, phase_name).token,
            identity_for(layer_id, layer_name).token,
            identity_for(check_id, check_name).token,
            f"{format_pk(start)}-{format_pk(end)}",
        ]
    )


def build_status_key(*, side, **parts) -> str:
    return f"{build_status_base_key(**parts)}|{side}"


def status_key_candidates(*, side=None, **parts) -> List[str]:
    """Keys to try for one logical check: exact ids first, names second."""

    builder = build_status_base_key if side is None else (lambda **kw: build_status_key(side=side, **kw))
    keys = [builder(**parts)]
    by_name = dict(parts, layer_id=None, check_id=None)
    fallback = builder(**by_name)
    if fallback not in keys:
        keys.append(fallback)
    return keys
