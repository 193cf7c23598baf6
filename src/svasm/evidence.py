"""
The evidence model. Every item of support for a breakend is one of three kinds (see
:class:`~svasm.constants.EVIDENCE_KIND`) and carries the sequence used to assemble it along with
the locus it supports. Evidence is not modified after it is created, methods which upgrade
evidence (ex. on realignment) return a new object.

Sequences are always given wrt the positive/forward strand of the reference. The anchored
bases are those aligned to the reference on the retained side of the break: the first
``anchor_length`` bases for a forward breakend and the last ``anchor_length`` bases for
a backward breakend.
"""
from typing import Dict, List, Optional, Sequence, Tuple

from .breakpoint import BreakendSummary, BreakpointSummary
from .constants import DIRECTION, EVIDENCE_KIND, FILTER


class EvidenceSource:
    """
    the library/sample evidence was extracted from

    Attributes:
        name: the library name
        tumour: True for tumour, False for normal and None when the source is not tagged
    """

    def __init__(self, name: str, tumour: Optional[bool] = None):
        self.name = name
        self.tumour = tumour

    @property
    def is_tagged(self) -> bool:
        return self.tumour is not None

    def __eq__(self, other):
        return isinstance(other, EvidenceSource) and (self.name, self.tumour) == (
            other.name,
            other.tumour,
        )

    def __hash__(self):
        return hash((self.name, self.tumour))

    def __repr__(self):
        return 'EvidenceSource({}, tumour={})'.format(repr(self.name), self.tumour)


ASSEMBLY_SOURCE = EvidenceSource('assembly')


class Evidence:
    kind: str = ''

    evidence_id: str
    source: EvidenceSource
    breakend: BreakendSummary
    sequence: Optional[str]
    quality: Optional[List[int]]
    anchor_length: int
    start_position: int
    error_width: int
    local_mapq: int
    remote_mapq: Optional[int]
    untemplated_sequence: Optional[str]
    log_likelihood_ratio: Optional[float]

    def __init__(
        self,
        evidence_id: str,
        source: EvidenceSource,
        breakend: BreakendSummary,
        sequence: Optional[str] = None,
        quality: Optional[Sequence[int]] = None,
        anchor_length: int = 0,
        start_position: Optional[int] = None,
        error_width: int = 0,
        local_mapq: int = 0,
        remote_mapq: Optional[int] = None,
        untemplated_sequence: Optional[str] = None,
        log_likelihood_ratio: Optional[float] = None,
    ):
        """
        Args:
            evidence_id: identifier unique to the source and record
            source: library the evidence was extracted from
            breakend: the locus this evidence supports
            sequence: bases to be assembled, None if the sequence is not known
            quality: per-base quality of the sequence
            anchor_length: number of bases of the sequence which are aligned to the reference
            start_position: reference position of the first base of the sequence
            error_width: uncertainty in the start position
            local_mapq: mapping quality of the anchored alignment
            remote_mapq: mapping quality of the remote alignment of a breakpoint
            untemplated_sequence: inserted bases between the two sides of a breakpoint
            log_likelihood_ratio: precomputed score of the evidence
        """
        if quality is not None and sequence is not None and len(quality) != len(sequence):
            raise AttributeError(
                'quality must be the same length as the sequence', len(quality), len(sequence)
            )
        if anchor_length < 0 or error_width < 0:
            raise AttributeError('anchor length and error width must be non-negative', anchor_length, error_width)
        self.evidence_id = evidence_id
        self.source = source
        self.breakend = breakend
        self.sequence = sequence.upper() if sequence is not None else None
        self.quality = list(quality) if quality is not None else None
        self.anchor_length = anchor_length
        self.start_position = start_position if start_position is not None else breakend.start
        self.error_width = error_width
        self.local_mapq = local_mapq
        self.remote_mapq = remote_mapq
        self.untemplated_sequence = untemplated_sequence
        self.log_likelihood_ratio = log_likelihood_ratio

    @property
    def is_breakpoint(self) -> bool:
        return self.breakend.is_breakpoint

    @property
    def direction(self) -> str:
        return self.breakend.direction

    def _breakend_slice(self) -> slice:
        length = len(self.sequence or '')
        if self.breakend.direction == DIRECTION.FWD:
            return slice(min(self.anchor_length, length), length)
        return slice(0, max(length - self.anchor_length, 0))

    @property
    def breakend_sequence(self) -> str:
        """
        the non-anchored bases
        """
        return (self.sequence or '')[self._breakend_slice()]

    @property
    def breakend_quality(self) -> Optional[List[int]]:
        if self.quality is None:
            return None
        return self.quality[self._breakend_slice()]

    def is_anchored(self, offset: int, length: int = 1) -> bool:
        """
        check if any of the bases from offset to offset + length overlap the anchored bases
        """
        if self.anchor_length <= 0:
            return False
        if self.breakend.direction == DIRECTION.FWD:
            return offset < self.anchor_length
        return offset + length > len(self.sequence or '') - self.anchor_length

    def _copy_kwargs(self) -> Dict:
        return {
            'evidence_id': self.evidence_id,
            'source': self.source,
            'breakend': self.breakend,
            'sequence': self.sequence,
            'quality': self.quality,
            'anchor_length': self.anchor_length,
            'start_position': self.start_position,
            'error_width': self.error_width,
            'local_mapq': self.local_mapq,
            'remote_mapq': self.remote_mapq,
            'untemplated_sequence': self.untemplated_sequence,
            'log_likelihood_ratio': self.log_likelihood_ratio,
        }

    def remote_view(self) -> 'Evidence':
        """
        the evidence as seen from the remote side of the breakpoint. Sequences are not carried
        over since they are only given wrt the local anchor

        Raises:
            AttributeError: the evidence is not a breakpoint
        """
        if not self.is_breakpoint:
            raise AttributeError('only breakpoint evidence has a remote view', self.evidence_id)
        kwargs = self._copy_kwargs()
        kwargs.update(
            {
                'evidence_id': 'R' + self.evidence_id,
                'breakend': self.breakend.remote_view(),  # type: ignore
                'sequence': None,
                'quality': None,
                'anchor_length': 0,
                'start_position': self.breakend.start2,  # type: ignore
                'local_mapq': self.remote_mapq or 0,
                'remote_mapq': self.local_mapq,
            }
        )
        return self.__class__(**kwargs)

    def __eq__(self, other):
        return isinstance(other, Evidence) and (self.kind, self.evidence_id, self.source) == (
            other.kind,
            other.evidence_id,
            other.source,
        )

    def __hash__(self):
        return hash((self.kind, self.evidence_id, self.source))

    def __repr__(self):
        return '{}({}, {})'.format(self.__class__.__name__, self.evidence_id, self.breakend)


class SoftClipEvidence(Evidence):
    """
    evidence from the soft clipped bases at the end of a single aligned read
    """

    kind = EVIDENCE_KIND.SOFT_CLIP

    @property
    def clip_length(self) -> int:
        return len(self.breakend_sequence)

    @property
    def is_realigned(self) -> bool:
        return self.is_breakpoint

    def with_realignment(
        self, remote: BreakendSummary, remote_mapq: int, untemplated_sequence: str = ''
    ) -> 'SoftClipEvidence':
        """
        upgrade to a breakpoint once the clipped bases have been aligned to the remote breakend
        """
        kwargs = self._copy_kwargs()
        kwargs.update(
            {
                'breakend': BreakpointSummary.from_breakends(self.breakend.local, remote),
                'remote_mapq': remote_mapq,
                'untemplated_sequence': untemplated_sequence,
            }
        )
        return SoftClipEvidence(**kwargs)


class ReadPairEvidence(Evidence):
    """
    evidence from a read pair where one read is anchored near the breakend and the mate is either
    unmapped (the sequence of the mate is used for assembly) or mapped discordantly. When the
    mate is mapped the breakend is a breakpoint directed towards the mate alignment
    """

    kind = EVIDENCE_KIND.READ_PAIR

    @property
    def is_directed(self) -> bool:
        return self.is_breakpoint


class AssemblyEvidence(Evidence):
    """
    evidence from a contig assembled from other evidence

    Attributes:
        supporting_evidence: the evidence the contig was assembled from
        filters: names of the thresholds this assembly did not pass
        contig_sequence: the full sequence of the assembled contig
    """

    kind = EVIDENCE_KIND.ASSEMBLY

    supporting_evidence: Tuple[Evidence, ...]
    filters: Tuple[str, ...]

    def __init__(
        self,
        *pos,
        supporting_evidence: Sequence[Evidence] = (),
        filters: Sequence[str] = (),
        **kwargs,
    ):
        Evidence.__init__(self, *pos, **kwargs)
        if self.log_likelihood_ratio is None:
            raise AttributeError('assembly evidence must carry a precomputed log likelihood ratio', self.evidence_id)
        self.supporting_evidence = tuple(supporting_evidence)
        self.filters = tuple(FILTER.enforce(f) for f in filters)

    @property
    def is_filtered(self) -> bool:
        return bool(self.filters)

    @property
    def evidence_ids(self) -> List[str]:
        return sorted({e.evidence_id for e in self.supporting_evidence})

    def _copy_kwargs(self) -> Dict:
        kwargs = Evidence._copy_kwargs(self)
        kwargs.update({'supporting_evidence': self.supporting_evidence, 'filters': self.filters})
        return kwargs

    def with_realignment(
        self, remote: BreakendSummary, remote_mapq: int, untemplated_sequence: str = ''
    ) -> 'AssemblyEvidence':
        """
        resolve the assembled breakend to a breakpoint once its breakend sequence has been aligned
        """
        kwargs = self._copy_kwargs()
        kwargs.update(
            {
                'breakend': BreakpointSummary.from_breakends(self.breakend.local, remote),
                'remote_mapq': remote_mapq,
                'untemplated_sequence': untemplated_sequence,
            }
        )
        return AssemblyEvidence(**kwargs)
