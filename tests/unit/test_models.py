import math

import pytest
from svasm.breakpoint import BreakendSummary
from svasm.constants import DIRECTION
from svasm.models import FisherSomaticModel, PhredLikelihoodScorer, llr_to_phred, phred_to_llr

from ..util import assembly, read_pair, soft_clip


class TestPhredTransform:
    def test_phred_to_llr(self):
        assert phred_to_llr(10) == pytest.approx(math.log(10))
        assert phred_to_llr(0) == 0

    def test_llr_to_phred(self):
        assert llr_to_phred(0) == pytest.approx(10 * math.log10(2))
        assert llr_to_phred(phred_to_llr(60)) == pytest.approx(60, abs=0.01)

    def test_large_llr_does_not_overflow(self):
        assert llr_to_phred(10000) == pytest.approx(10000 * 10 / math.log(10))

    def test_monotonic(self):
        assert llr_to_phred(-5) < llr_to_phred(0) < llr_to_phred(5)


class TestPhredLikelihoodScorer:
    def test_read_pair_uses_lowest_mapq(self):
        scorer = PhredLikelihoodScorer()
        assert scorer(read_pair('rp1', 100, mapq=30)) == pytest.approx(phred_to_llr(30))
        pair = read_pair('rp2', 100, mapq=30, remote=BreakendSummary(1, DIRECTION.BWD, 500), remote_mapq=10)
        assert scorer(pair) == pytest.approx(phred_to_llr(10))

    def test_short_soft_clip_scaled(self):
        scorer = PhredLikelihoodScorer(full_clip_length=20)
        short = soft_clip('r1', 1, 'A' * 20, 10, mapq=40)
        full = soft_clip('r2', 1, 'A' * 40, 10, mapq=40)
        assert scorer(short) == pytest.approx(phred_to_llr(40) / 2)
        assert scorer(full) == pytest.approx(phred_to_llr(40))

    def test_precomputed_ratio(self):
        scorer = PhredLikelihoodScorer()
        assert scorer(assembly('asm1', BreakendSummary(0, DIRECTION.FWD, 10), llr=7.5)) == 7.5
        assert scorer(read_pair('rp1', 100, log_likelihood_ratio=3.0)) == 3.0


class TestFisherSomaticModel:
    def test_unsplit_counts(self):
        assert FisherSomaticModel()([10], [5]) == 1.0

    def test_tumour_enriched(self):
        assert FisherSomaticModel()([0, 20], [20, 0]) < 0.001

    def test_normal_enriched(self):
        assert FisherSomaticModel()([20, 0], [0, 20]) == pytest.approx(1.0)

    def test_no_reads(self):
        assert FisherSomaticModel()([0, 0], [0, 0]) == pytest.approx(1.0)
