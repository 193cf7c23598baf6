import pytest
from svasm.constants import DIRECTION
from svasm.error import MalformedEvidenceError
from svasm.kmer import KmerSupportIndex, KmerSupportNode, decode_kmer, encode_kmer, min_quality_weight

from ..util import read_pair, soft_clip


class TestKmerEncoding:
    def test_encode(self):
        assert encode_kmer('ACGT') == 27
        assert encode_kmer('acgt') == 27
        assert encode_kmer('AAA') == 0
        assert encode_kmer('TTT') == 63

    def test_decode(self):
        assert decode_kmer(27, 4) == 'ACGT'
        assert decode_kmer(0, 3) == 'AAA'

    def test_lexicographic_order(self):
        kmers = ['CGA', 'AAC', 'TTT', 'AAA', 'CAT']
        assert sorted(kmers) == sorted(kmers, key=encode_kmer)

    def test_ambiguous_base(self):
        with pytest.raises(KeyError):
            encode_kmer('ANA')


class TestMinQualityWeight:
    def test_min_quality(self):
        assert min_quality_weight('ACG', [30, 10, 20]) == 10

    def test_ambiguous(self):
        assert min_quality_weight('ANG', [30, 30, 30]) == 0


class TestKmerSupportIndex:
    def test_offsets(self):
        ev = soft_clip('sc1', 100, 'AACCGGTT', 2)
        index = KmerSupportIndex(ev, 3)
        nodes = list(index)
        assert len(index) == 6
        assert [n.offset for n in nodes] == list(range(6))
        assert [decode_kmer(n.kmer, 3) for n in nodes] == ['AAC', 'ACC', 'CCG', 'CGG', 'GGT', 'GTT']

    def test_restartable(self):
        index = KmerSupportIndex(soft_clip('sc1', 100, 'AACCGGTT', 2), 3)
        first = [(n.offset, n.kmer, n.weight) for n in index]
        second = [(n.offset, n.kmer, n.weight) for n in index]
        assert first == second

    def test_positions_with_error_width(self):
        ev = read_pair('rp1', 100, 200, sequence='ACGTACGT', start_position=150, error_width=2)
        node = KmerSupportIndex(ev, 4).node(3)
        assert node.start_position == 151
        assert node.end_position == 155

    def test_reference_flag_forward(self):
        index = KmerSupportIndex(soft_clip('sc1', 100, 'AACCGG', 2), 3)
        assert [n.is_reference for n in index] == [True, True, False, False]
        assert [n.offset for n in index if not n.is_reference] == [2, 3]

    def test_reference_flag_backward(self):
        index = KmerSupportIndex(soft_clip('sc1', 100, 'AACCGG', 2, direction=DIRECTION.BWD), 3)
        assert [n.is_reference for n in index] == [False, False, True, True]

    def test_unanchored_has_no_reference_kmers(self):
        index = KmerSupportIndex(read_pair('rp1', 100, 200, sequence='ACGTACGT'), 4)
        assert not any(n.is_reference for n in index)

    def test_weight(self):
        ev = soft_clip('sc1', 100, 'AACNGG', 2)
        ev.quality[:] = [10, 20, 30, 40, 40, 40]
        weights = [n.weight for n in KmerSupportIndex(ev, 2)]
        assert weights == [10, 20, 0, 0, 40]
        assert KmerSupportIndex(ev, 2).node(2).kmer is None

    def test_fallback_base_quality(self):
        ev = read_pair('rp1', 100, 200, sequence='ACGTACGT')
        ev.quality = None
        assert {n.weight for n in KmerSupportIndex(ev, 3, fallback_base_quality=7)} == {7}

    def test_custom_weight(self):
        index = KmerSupportIndex(soft_clip('sc1', 100, 'AACCGG', 2), 3, weight_func=lambda seq, qual: 1)
        assert {n.weight for n in index} == {1}

    def test_empty_sequence(self):
        with pytest.raises(MalformedEvidenceError):
            KmerSupportIndex(read_pair('rp1', 100, 200, sequence=''), 3)

    def test_kmer_longer_than_sequence(self):
        with pytest.raises(MalformedEvidenceError):
            KmerSupportIndex(soft_clip('sc1', 100, 'AACC', 2), 5)

    def test_no_sequence(self):
        with pytest.raises(MalformedEvidenceError):
            KmerSupportIndex(read_pair('rp1', 100, 200), 3)

    def test_node_out_of_range(self):
        with pytest.raises(IndexError):
            KmerSupportIndex(soft_clip('sc1', 100, 'AACC', 2), 3).node(2)


class TestKmerSupportNode:
    def test_identity_is_evidence_and_offset(self):
        ev = soft_clip('sc1', 100, 'ACGACG', 1)
        index = KmerSupportIndex(ev, 3)
        # the same kmer value recurs at a different offset
        assert index.node(0).kmer == index.node(3).kmer
        assert index.node(0) != index.node(3)
        assert index.node(0) == index.node(0)
        assert len({index.node(0), index.node(0), index.node(3)}) == 2

    def test_different_evidence(self):
        first = KmerSupportIndex(soft_clip('sc1', 100, 'ACGACG', 1), 3).node(0)
        second = KmerSupportIndex(soft_clip('sc2', 100, 'ACGACG', 1), 3).node(0)
        assert isinstance(first, KmerSupportNode)
        assert first != second
