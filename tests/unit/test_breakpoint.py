import pytest
from svasm.breakpoint import BreakendSummary, BreakpointSummary, format_breakend
from svasm.constants import DIRECTION
from svasm.interval import Interval
from svasm.sources import SequenceDictionary


class TestInterval:
    def test___init__error(self):
        with pytest.raises(AttributeError):
            Interval(4, 3)

    def test_overlaps(self):
        assert Interval.overlaps((1, 10), (10, 11))
        assert not Interval.overlaps(Interval(1, 4), Interval(5, 7))
        assert Interval.overlaps(Interval(5, 7), Interval(1, 5))

    def test_union(self):
        assert Interval.union((1, 2), (10, 11)) == Interval(1, 11)
        assert Interval.union((5, 50), (1, 10), (7, 8)) == Interval(1, 50)
        with pytest.raises(AttributeError):
            Interval.union()

    def test_len_contains(self):
        assert len(Interval(1, 11)) == 11
        assert 5 in Interval(1, 10)
        assert Interval(2, 3) in Interval(1, 10)
        assert Interval(2, 30) not in Interval(1, 10)


class TestBreakendSummary:
    def test_bad_direction(self):
        with pytest.raises(KeyError):
            BreakendSummary(0, 'L', 10)

    def test_bad_interval(self):
        with pytest.raises(AttributeError):
            BreakendSummary(0, DIRECTION.FWD, 10, 9)

    def test_immutable(self):
        bpp = BreakendSummary(0, DIRECTION.FWD, 10)
        with pytest.raises(AttributeError):
            bpp.start = 11
        with pytest.raises(AttributeError):
            bpp.direction = DIRECTION.BWD

    def test_equality_and_hash(self):
        assert BreakendSummary(0, 'f', 10, 12) == BreakendSummary(0, 'f', 10, 12)
        assert BreakendSummary(0, 'f', 10, 12) != BreakendSummary(0, 'b', 10, 12)
        assert len({BreakendSummary(0, 'f', 10), BreakendSummary(0, 'f', 10)}) == 1

    def test_overlaps_reflexive(self):
        bpp = BreakendSummary(0, DIRECTION.FWD, 10, 20)
        assert bpp.overlaps(bpp)

    def test_overlaps(self):
        first = BreakendSummary(0, DIRECTION.FWD, 10, 20)
        assert first.overlaps(BreakendSummary(0, DIRECTION.FWD, 20, 30))
        assert not first.overlaps(BreakendSummary(0, DIRECTION.FWD, 21, 30))
        assert not first.overlaps(BreakendSummary(0, DIRECTION.BWD, 10, 20))
        assert not first.overlaps(BreakendSummary(1, DIRECTION.FWD, 10, 20))

    def test_union(self):
        assert BreakendSummary(0, 'f', 1, 5).union(BreakendSummary(0, 'f', 10)) == BreakendSummary(0, 'f', 1, 10)
        with pytest.raises(ValueError):
            BreakendSummary(0, 'f', 1, 5).union(BreakendSummary(0, 'b', 10))

    def test_name(self):
        reference = SequenceDictionary([('chr1', 100), ('chr2', 100)])
        assert BreakendSummary(1, 'b', 10).name(reference) == 'chr2:10b'
        assert BreakendSummary(0, 'f', 10, 12).name() == '0:10-12f'

    def test_format_breakend(self):
        assert format_breakend('chr1', 10, 10, 'f') == 'chr1:10f'
        assert format_breakend('chr1', 10, 12, 'b') == 'chr1:10-12b'


class TestBreakpointSummary:
    def setup_method(self):
        self.bpp = BreakpointSummary(0, DIRECTION.FWD, 10, 20, 1, DIRECTION.BWD, 100, 110)

    def test_local_remote(self):
        assert self.bpp.is_breakpoint
        assert self.bpp.local == BreakendSummary(0, DIRECTION.FWD, 10, 20)
        assert self.bpp.remote == BreakendSummary(1, DIRECTION.BWD, 100, 110)

    def test_remote_view(self):
        view = self.bpp.remote_view()
        assert view.local == self.bpp.remote
        assert view.remote == self.bpp.local
        assert view.remote_view() == self.bpp

    def test_not_equal_to_breakend(self):
        assert self.bpp != self.bpp.local

    def test_overlaps_requires_both_sides(self):
        other = BreakpointSummary(0, DIRECTION.FWD, 15, 15, 1, DIRECTION.BWD, 200, 210)
        assert not self.bpp.overlaps(other)
        assert not other.overlaps(self.bpp)
        other = BreakpointSummary(0, DIRECTION.FWD, 15, 15, 1, DIRECTION.BWD, 105, 105)
        assert self.bpp.overlaps(other)
        assert other.overlaps(self.bpp)

    def test_overlaps_breakend_is_symmetric(self):
        breakend = BreakendSummary(0, DIRECTION.FWD, 20, 25)
        assert self.bpp.overlaps(breakend)
        assert breakend.overlaps(self.bpp)
        breakend = BreakendSummary(0, DIRECTION.BWD, 20, 25)
        assert not self.bpp.overlaps(breakend)
        assert not breakend.overlaps(self.bpp)

    def test_name(self):
        reference = SequenceDictionary([('chr1', 100), ('chr2', 1000)])
        assert self.bpp.name(reference) == 'chr1:10-20fchr2:100-110b'

    def test_to_dict(self):
        row = self.bpp.to_dict()
        assert row['reference_index2'] == 1
        assert row['direction2'] == DIRECTION.BWD
        assert row['start'] == 10
