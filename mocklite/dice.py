"""Weighted variant selection."""

from __future__ import annotations

import secrets
from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Callable, Mapping

from .core import CmpErr


@dataclass(frozen=True)
class Dice:
    """Flattened distribution of one weight group.

    Each unit of weight is one equally likely draw. Units are kept as
    cumulative bounds so large factors do not blow up memory.

    Args:
        nms: Variant names in configuration order.
        cum: Cumulative weight upper bounds, aligned with nms.
        rb: Random source: rb(n) returns an int in [0, n).
    """

    nms: tuple[str, ...]
    cum: tuple[int, ...]
    rb: Callable[[int], int] = field(default=secrets.randbelow, compare=False, repr=False)

    @property
    def total(self) -> int:
        return self.cum[-1]

    def dice(self) -> str:
        """Draw one variant name."""
        return self.nms[bisect_right(self.cum, self.rb(self.total))]


def mk_dice(gn: str, fct: Mapping[str, int], rb: Callable[[int], int] | None = None) -> Dice:
    """Compile a weight group.

    Args:
        gn: Group name (for errors).
        fct: Variant name -> non-negative integer weight.
        rb: Optional random source.

    Returns:
        Compiled dice.

    Raises:
        CmpErr: If a factor is negative or not an int, or total weight is 0.
    """
    nms: list[str] = []
    cum: list[int] = []
    t = 0
    for k, v in fct.items():
        if isinstance(v, bool) or not isinstance(v, int) or v < 0:
            raise CmpErr(f"bad weight {v!r} for {k!r} in group {gn!r}")
        if v == 0:
            continue
        t += v
        nms.append(str(k))
        cum.append(t)
    if t <= 0:
        raise CmpErr(f"weight group {gn!r} has no positive weight")
    if rb is None:
        return Dice(tuple(nms), tuple(cum))
    return Dice(tuple(nms), tuple(cum), rb)


@dataclass(frozen=True)
class Pkr:
    """All weight groups of a rule."""

    grp: Mapping[str, Dice] = field(default_factory=dict)

    def dice_all(self) -> dict[str, str]:
        """Draw independently once for every group.

        Returns:
            Group name -> drawn variant name.
        """
        return {k: d.dice() for k, d in self.grp.items()}


def mk_pkr(wt: Mapping[str, Mapping[str, int]] | None, rb: Callable[[int], int] | None = None) -> Pkr:
    """Compile a rule's weight map.

    Args:
        wt: Group name -> factors.
        rb: Optional random source shared by the groups.

    Returns:
        Picker.

    Raises:
        CmpErr: If any group is invalid.
    """
    return Pkr({str(k): mk_dice(str(k), v, rb) for k, v in (wt or {}).items()})
