"""
Scoring of evidence and calls

The likelihood scorer gives the log-likelihood ratio (natural log) of a single evidence item. The
phred transform converts the combined ratio of a call to the quality of the call and the somatic
model compares the tumour and normal support of a call.
"""
import math
from typing import Callable, Dict, List, Sequence

import numpy as np
from scipy.stats import fisher_exact

from .constants import EVIDENCE_KIND
from .evidence import Evidence

LN10: float = math.log(10)


def phred_to_llr(quality: float) -> float:
    """
    log-likelihood ratio of a phred-scaled quality

    Example:
        >>> phred_to_llr(10)
        2.302585092994046
    """
    return quality * LN10 / 10


def llr_to_phred(llr: float) -> float:
    """
    phred-scaled quality implied by a log-likelihood ratio. The probability the call is an error is
    taken as 1 / (1 + e^llr) so the quality is 10 log10(1 + e^llr)

    Example:
        >>> round(llr_to_phred(0), 3)
        3.01
    """
    return float(10 * np.logaddexp(0, llr) / LN10)


class PhredLikelihoodScorer:
    """
    scores evidence by the phred-scaled mapping quality of its alignments

    Attributes:
        full_clip_length: soft clips of at least this length are given the full score of their mapping quality
    """

    def __init__(self, full_clip_length: int = 25):
        self.full_clip_length = full_clip_length
        self._dispatch: Dict[str, Callable[[Evidence], float]] = {
            EVIDENCE_KIND.SOFT_CLIP: self.score_soft_clip,
            EVIDENCE_KIND.READ_PAIR: self.score_read_pair,
            EVIDENCE_KIND.ASSEMBLY: self.score_assembly,
        }

    def score_soft_clip(self, evidence: Evidence) -> float:
        mapq = evidence.local_mapq
        if evidence.is_breakpoint and evidence.remote_mapq is not None:
            mapq = min(mapq, evidence.remote_mapq)
        scale = min(1.0, len(evidence.breakend_sequence) / self.full_clip_length) if self.full_clip_length else 1.0
        return phred_to_llr(mapq) * scale

    def score_read_pair(self, evidence: Evidence) -> float:
        mapq = evidence.local_mapq
        if evidence.remote_mapq is not None:
            mapq = min(mapq, evidence.remote_mapq)
        return phred_to_llr(mapq)

    def score_assembly(self, evidence: Evidence) -> float:
        if evidence.log_likelihood_ratio is None:
            raise AttributeError('assembly evidence must carry its log likelihood ratio', evidence.evidence_id)
        return evidence.log_likelihood_ratio

    def __call__(self, evidence: Evidence) -> float:
        if evidence.log_likelihood_ratio is not None:
            return evidence.log_likelihood_ratio
        return self._dispatch[evidence.kind](evidence)


class FisherSomaticModel:
    """
    one-sided Fisher's exact test that the fraction of reads supporting the call is greater in the tumour than
    in the normal
    """

    def __call__(self, support: Sequence[int], reference: Sequence[int]) -> float:
        """
        Args:
            support: supporting read counts as [normal, tumour] (or [total] when not split)
            reference: reference read counts as [normal, tumour] (or [total] when not split)

        Returns:
            the p-value, 1 when there is no normal/tumour split
        """
        if len(support) != 2 or len(reference) != 2:
            return 1.0
        normal_support, tumour_support = support
        normal_reference, tumour_reference = reference
        table: List[List[int]] = [
            [int(tumour_support), int(tumour_reference)],
            [int(normal_support), int(normal_reference)],
        ]
        _, pvalue = fisher_exact(table, alternative='greater')
        return min(1.0, max(0.0, float(pvalue)))
