"""
Statistical reducer for view rows.

Folds prices into {sum, count, min, max, sumsqr}. The fold is associative
and commutative, so partial results computed per group (or per database
partition) can be merged in any order:

    rereduce([reduce_values(a), reduce_values(b)]) == reduce_values(a + b)
"""

from dataclasses import dataclass
from functools import reduce
from typing import Any, Dict, Iterable, Optional, Union

Number = Union[int, float]


@dataclass(frozen=True)
class Stats:
    sum: Number
    count: int
    min: Number
    max: Number
    sumsqr: Number

    @classmethod
    def of(cls, value: Number) -> 'Stats':
        return cls(sum=value, count=1, min=value, max=value, sumsqr=value * value)

    def merge(self, other: 'Stats') -> 'Stats':
        return Stats(
            sum=self.sum + other.sum,
            count=self.count + other.count,
            min=min(self.min, other.min),
            max=max(self.max, other.max),
            sumsqr=self.sumsqr + other.sumsqr,
        )

    @property
    def mean(self) -> Optional[float]:
        """Average value, or None for an empty group (never NaN)."""
        if not self.count:
            return None
        return self.sum / self.count

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sum': self.sum,
            'count': self.count,
            'min': self.min,
            'max': self.max,
            'sumsqr': self.sumsqr,
        }


def reduce_values(values: Iterable[Number]) -> Optional[Stats]:
    """Reduce raw values. Returns None when there are no values."""
    return rereduce(Stats.of(v) for v in values)


def rereduce(partials: Iterable[Optional[Stats]]) -> Optional[Stats]:
    """Merge partial Stats. None partials (empty groups) are ignored."""
    present = (p for p in partials if p is not None and p.count)
    return reduce(lambda acc, s: s if acc is None else acc.merge(s), present, None)
