"""
Positional kmer support. Each evidence item contributes one kmer per offset into its sequence. The
kmer is placed on the reference at the position the evidence expects that base to be, widened by the
positional uncertainty of the evidence.
"""
from typing import Callable, Iterator, List

from .constants import BASE_ENCODING, BASES
from .error import MalformedEvidenceError
from .evidence import Evidence

WeightFunc = Callable[[str, List[int]], int]


def kmer_mask(k: int) -> int:
    return (1 << (2 * k)) - 1


def encode_kmer(seq: str) -> int:
    """
    pack the bases of a kmer into an integer using 2 bits per base. The first base is
    the most significant so that integer order matches lexicographic order

    Raises:
        KeyError: the sequence contains a base other than ACGT

    Example:
        >>> encode_kmer('ACGT')
        27
    """
    value = 0
    for base in seq.upper():
        value = (value << 2) | BASE_ENCODING[base]
    return value


def decode_kmer(value: int, k: int) -> str:
    """
    Example:
        >>> decode_kmer(27, 4)
        'ACGT'
    """
    bases = []
    for _ in range(k):
        bases.append(BASES[value & 3])
        value >>= 2
    return ''.join(reversed(bases))


def min_quality_weight(seq: str, quality: List[int]) -> int:
    """
    weight of a kmer as the lowest base quality it spans. Any ambiguous base gives a weight of zero
    """
    if any(base not in BASE_ENCODING for base in seq):
        return 0
    return max(0, min(quality))


class KmerSupportNode:
    """
    the contribution of the kmer starting at a given offset of an evidence sequence

    two nodes are equal when they are from the same evidence at the same offset
    """

    __slots__ = ['evidence', 'offset', 'kmer', 'weight', 'is_reference']

    def __init__(self, evidence: Evidence, offset: int, kmer: int, weight: int, is_reference: bool):
        self.evidence = evidence
        self.offset = offset
        self.kmer = kmer
        self.weight = weight
        self.is_reference = is_reference

    @property
    def start_position(self) -> int:
        return self.evidence.start_position - self.evidence.error_width + self.offset

    @property
    def end_position(self) -> int:
        return self.evidence.start_position + self.evidence.error_width + self.offset

    @property
    def key(self):
        return (self.evidence.evidence_id, self.offset)

    def __eq__(self, other):
        return isinstance(other, KmerSupportNode) and self.key == other.key

    def __hash__(self):
        return hash(self.key)

    def __repr__(self):
        return 'KmerSupportNode({}, {}, [{}, {}], weight={}{})'.format(
            self.evidence.evidence_id,
            self.offset,
            self.start_position,
            self.end_position,
            self.weight,
            ', reference' if self.is_reference else '',
        )


class KmerSupportIndex:
    """
    lazily produces the kmer support nodes of a single evidence item. Iterating again starts
    again from the first offset
    """

    def __init__(
        self,
        evidence: Evidence,
        k: int,
        weight_func: WeightFunc = min_quality_weight,
        fallback_base_quality: int = 20,
    ):
        """
        Args:
            evidence: the evidence to index
            k: the kmer size
            weight_func: computes the weight of a kmer from its bases and base qualities
            fallback_base_quality: base quality to use when the evidence has no qualities

        Raises:
            MalformedEvidenceError: the evidence has no sequence or a sequence shorter than k
        """
        if k < 1:
            raise AttributeError('kmer size must be a positive integer', k)
        if not evidence.sequence:
            raise MalformedEvidenceError('evidence has an empty sequence', evidence.evidence_id)
        if k > len(evidence.sequence):
            raise MalformedEvidenceError(
                'kmer size exceeds the evidence sequence length',
                evidence.evidence_id,
                k,
                len(evidence.sequence),
            )
        self.evidence = evidence
        self.k = k
        self.weight_func = weight_func
        if evidence.quality is not None:
            self.quality = evidence.quality
        else:
            self.quality = [fallback_base_quality] * len(evidence.sequence)

    def __len__(self):
        return len(self.evidence.sequence) - self.k + 1  # type: ignore

    def node(self, offset: int) -> KmerSupportNode:
        if offset < 0 or offset >= len(self):
            raise IndexError('offset is outside the kmers of the sequence', offset, len(self))
        seq = self.evidence.sequence[offset : offset + self.k]  # type: ignore
        weight = self.weight_func(seq, self.quality[offset : offset + self.k])
        try:
            kmer = encode_kmer(seq)
        except KeyError:
            kmer = None
        return KmerSupportNode(
            self.evidence,
            offset,
            kmer,
            weight if kmer is not None else 0,
            self.evidence.is_anchored(offset, self.k),
        )

    def __iter__(self) -> Iterator[KmerSupportNode]:
        for offset in range(len(self)):
            yield self.node(offset)

