from typing import Tuple, Union

IntervalLike = Union['Interval', Tuple[int, int]]


class Interval:
    """
    closed integer interval on a reference sequence (both ends inclusive)
    """

    def __init__(self, start: int, end=None):
        """
        Args:
            start: the start of the interval (inclusive)
            end: the end of the interval (inclusive), defaults to the start
        """
        start = int(start)
        end = start if end is None else int(end)
        if start > end:
            raise AttributeError('interval start > end is not allowed', start, end)
        self.start = start
        self.end = end

    def __getitem__(self, index):
        try:
            index = int(index)
        except ValueError:
            raise IndexError('index input accessor must be an integer', index)
        if index == 0:
            return self.start
        elif index == 1:
            return self.end
        raise IndexError('index input accessor is out of bounds: 1 or 2 only', index)

    def __len__(self):
        """
        the length of the interval

        Example:
            >>> len(Interval(1, 11))
            11
        """
        return Interval.length(self)

    def length(self) -> int:
        return self[1] - self[0] + 1

    def __contains__(self, other):
        try:
            return other[0] >= self[0] and other[1] <= self[1]
        except TypeError:
            return self[0] <= other <= self[1]

    def __eq__(self, other):
        try:
            return self[0] == other[0] and self[1] == other[1]
        except (TypeError, IndexError):
            return False

    def __hash__(self):
        return hash((self[0], self[1]))

    def __lt__(self, other):
        return (self[0], self[1]) < (other[0], other[1])

    def __repr__(self):
        return '{}({}, {})'.format(self.__class__.__name__, self.start, self.end)

    @classmethod
    def overlaps(cls, first: IntervalLike, other: IntervalLike) -> bool:
        """
        checks if two intervals have any portion of their given ranges in common

        Example:
            >>> Interval.overlaps(Interval(1, 4), Interval(5, 7))
            False
            >>> Interval.overlaps((1, 10), (10, 11))
            True
        """
        return not (first[1] < other[0] or first[0] > other[1])

    @classmethod
    def union(cls, *intervals: IntervalLike) -> 'Interval':
        """
        the smallest interval containing all of the input intervals

        Example:
            >>> Interval.union((1, 2), (10, 11))
            Interval(1, 11)
        """
        if not intervals:
            raise AttributeError('cannot compute the union of an empty set of intervals')
        return Interval(min(i[0] for i in intervals), max(i[1] for i in intervals))
