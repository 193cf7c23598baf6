from typing import Dict, Optional

from .constants import DIRECTION
from .interval import Interval


def format_breakend(reference_name, start: int, end: int, direction: str) -> str:
    """
    Example:
        >>> format_breakend('chr1', 10, 10, 'f')
        'chr1:10f'
        >>> format_breakend('chr1', 10, 12, 'b')
        'chr1:10-12b'
    """
    if start == end:
        return '{}:{}{}'.format(reference_name, start, direction)
    return '{}:{}-{}{}'.format(reference_name, start, end, direction)


class BreakendSummary(Interval):
    """
    a single sided breakend. The interval is the uncertainty in the position of the break
    and the direction gives which side of the break is retained (anchored)

    coordinates are given as 1-indexed
    """

    reference_index: int
    direction: str

    def __init__(self, reference_index: int, direction: str, start: int, end: Optional[int] = None):
        """
        Args:
            reference_index: index of the reference sequence in the sequence dictionary
            direction (DIRECTION): forward if the anchored sequence is before the break
            start: the first possible position of the break
            end: the last possible position of the break

        Examples:
            >>> BreakendSummary(0, 'f', 10)
            >>> BreakendSummary(0, DIRECTION.BWD, 10, 20)
        """
        Interval.__init__(self, start, end)
        self.reference_index = int(reference_index)
        self.direction = DIRECTION.enforce(direction)
        self._frozen = True

    def __setattr__(self, name, value):
        if getattr(self, '_frozen', False):
            raise AttributeError('breakend loci cannot be modified', name)
        object.__setattr__(self, name, value)

    @property
    def key(self):
        return (self.reference_index, self.start, self.end, self.direction)

    @property
    def is_breakpoint(self) -> bool:
        return False

    @property
    def local(self) -> 'BreakendSummary':
        return self

    def __eq__(self, other):
        if not hasattr(other, 'key'):
            return False
        return self.key == other.key

    def __hash__(self):
        return hash(self.key)

    def __lt__(self, other):
        return self.key < other.key

    def __repr__(self):
        return '{}({})'.format(
            self.__class__.__name__,
            format_breakend(self.reference_index, self.start, self.end, self.direction),
        )

    def overlaps(self, other: 'BreakendSummary') -> bool:  # type: ignore
        """
        checks if two loci could describe the same break. Two breakpoints must overlap on both sides. When
        either locus is a single sided breakend only the local side is compared
        """
        if self.reference_index != other.reference_index or self.direction != other.direction:
            return False
        if not Interval.overlaps(self, other):
            return False
        if self.is_breakpoint and other.is_breakpoint:
            return self.remote.overlaps(other.remote)  # type: ignore
        return True

    def union(self, other: 'BreakendSummary') -> 'BreakendSummary':
        """
        the smallest breakend containing both breakends. Only the local sides are used
        """
        if self.reference_index != other.reference_index or self.direction != other.direction:
            raise ValueError('cannot take the union of breakends on different references or directions', self, other)
        interval = Interval.union(self, other)
        return BreakendSummary(self.reference_index, self.direction, interval.start, interval.end)

    def name(self, reference=None) -> str:
        """
        Args:
            reference (ReferenceLookup): used to find the name of the reference sequence, the index is used if not given
        """
        ref_name = reference.name(self.reference_index) if reference is not None else self.reference_index
        return format_breakend(ref_name, self.start, self.end, self.direction)

    def to_dict(self) -> Dict:
        return {
            'reference_index': self.reference_index,
            'direction': self.direction,
            'start': self.start,
            'end': self.end,
        }


class BreakpointSummary(BreakendSummary):
    """
    a two sided breakpoint. The local side is stored on the object itself and the remote side
    in the reference_index2, direction2, start2, end2 attributes
    """

    reference_index2: int
    direction2: str
    start2: int
    end2: int

    def __init__(
        self,
        reference_index: int,
        direction: str,
        start: int,
        end: Optional[int],
        reference_index2: int,
        direction2: str,
        start2: int,
        end2: Optional[int] = None,
    ):
        remote = Interval(start2, end2)
        object.__setattr__(self, 'reference_index2', int(reference_index2))
        object.__setattr__(self, 'direction2', DIRECTION.enforce(direction2))
        object.__setattr__(self, 'start2', remote.start)
        object.__setattr__(self, 'end2', remote.end)
        BreakendSummary.__init__(self, reference_index, direction, start, end)

    @classmethod
    def from_breakends(cls, local: BreakendSummary, remote: BreakendSummary) -> 'BreakpointSummary':
        return cls(
            local.reference_index,
            local.direction,
            local.start,
            local.end,
            remote.reference_index,
            remote.direction,
            remote.start,
            remote.end,
        )

    @property
    def key(self):
        return (
            self.reference_index,
            self.start,
            self.end,
            self.direction,
            self.reference_index2,
            self.start2,
            self.end2,
            self.direction2,
        )

    @property
    def is_breakpoint(self) -> bool:
        return True

    @property
    def local(self) -> BreakendSummary:
        return BreakendSummary(self.reference_index, self.direction, self.start, self.end)

    @property
    def remote(self) -> BreakendSummary:
        return BreakendSummary(self.reference_index2, self.direction2, self.start2, self.end2)

    def remote_view(self) -> 'BreakpointSummary':
        """
        the same breakpoint as seen from the other side
        """
        return BreakpointSummary.from_breakends(self.remote, self.local)

    def __repr__(self):
        return '{}({}{})'.format(
            self.__class__.__name__,
            format_breakend(self.reference_index, self.start, self.end, self.direction),
            format_breakend(self.reference_index2, self.start2, self.end2, self.direction2),
        )

    def name(self, reference=None) -> str:
        return self.local.name(reference) + self.remote.name(reference)

    def to_dict(self) -> Dict:
        row = BreakendSummary.to_dict(self)
        row.update(
            {
                'reference_index2': self.reference_index2,
                'direction2': self.direction2,
                'start2': self.start2,
                'end2': self.end2,
            }
        )
        return row
