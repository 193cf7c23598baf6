"""
Synthesis of structural variant calls from the evidence supporting a single locus

Calls are built by folding evidence into an immutable :class:`CallAccumulator` with :func:`accumulate`
and then converting the accumulator into a :class:`StructuralVariantCall` with :func:`make_call`. The
:class:`CallBuilder` wraps these for callers which prefer to add evidence one item at a time.

Per-category attributes are given as [normal, tumour] when every item contributing to the attribute
is from a tagged source and at least one is from the tumour. Otherwise the attribute is collapsed to
a single [total].
"""
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .breakpoint import BreakendSummary
from .constants import ASSEMBLY_PROGRAM_NAME, ATTR, COLUMNS, EVIDENCE_KIND
from .error import InvariantViolationError
from .evidence import Evidence
from .models import FisherSomaticModel, PhredLikelihoodScorer, llr_to_phred
from .util import logger

LikelihoodScorer = Callable[[Evidence], float]
SomaticModel = Callable[[Sequence[int], Sequence[int]], float]


def sum_values(values: Iterable) -> int:
    return sum(values)


def max_values(values: Iterable) -> int:
    return max(values, default=0)


def is_split(items: Sequence[Evidence]) -> bool:
    """
    only split into normal and tumour when every item is tagged and the tumour is represented
    """
    return bool(items) and all(e.source.is_tagged for e in items) and any(e.source.tumour for e in items)


def aggregate(items: Sequence[Evidence], value_func: Callable[[Evidence], int], combine=sum_values) -> List[int]:
    """
    Args:
        items: the evidence contributing to the attribute
        value_func: the value of the attribute for a single evidence item
        combine: combines the values of a category (sum_values or max_values)

    Returns:
        [normal, tumour] or [total] when the values cannot be split
    """
    if is_split(items):
        return [
            combine([value_func(e) for e in items if not e.source.tumour]),
            combine([value_func(e) for e in items if e.source.tumour]),
        ]
    return [combine([value_func(e) for e in items])]


def assembly_sort_key(evidence: Evidence, llr: float):
    """breakpoints first then by log-likelihood ratio descending"""
    return (not evidence.is_breakpoint, -llr, evidence.evidence_id)


def softclip_sort_key(evidence: Evidence, llr: float):
    """realigned soft clips first then by log-likelihood ratio descending"""
    return (not evidence.is_breakpoint, -llr, evidence.evidence_id)


_KIND_RANK = {EVIDENCE_KIND.ASSEMBLY: 0, EVIDENCE_KIND.SOFT_CLIP: 1, EVIDENCE_KIND.READ_PAIR: 2}


def anchor_priority_key(evidence: Evidence, llr: float):
    """order in which evidence is considered as the anchor of a new call"""
    return (_KIND_RANK[evidence.kind], not evidence.is_breakpoint, -llr, evidence.evidence_id)


@dataclass(frozen=True)
class CallAccumulator:
    """
    the evidence collected for a single call

    Attributes:
        anchor: the locus all evidence must overlap
        assemblies: assembly evidence in the order it was added
        soft_clips: soft clip evidence in the order it was added
        read_pairs: read pair evidence in the order it was added
        assembly_llr: log-likelihood ratio carried from the anchor
        softclip_llr: [normal, tumour] soft clip log-likelihood ratio carried from the anchor
        readpair_llr: [normal, tumour] read pair log-likelihood ratio carried from the anchor
        reference_reads: (normal, tumour) reads supporting the reference allele
        reference_spanning_pairs: (normal, tumour) read pairs spanning the locus and supporting the reference
        consensus: assembly consensus sequences carried from the anchor
    """

    anchor: BreakendSummary
    assemblies: Tuple[Evidence, ...] = ()
    soft_clips: Tuple[Evidence, ...] = ()
    read_pairs: Tuple[Evidence, ...] = ()
    assembly_llr: float = 0
    softclip_llr: Tuple[float, float] = (0, 0)
    readpair_llr: Tuple[float, float] = (0, 0)
    reference_reads: Tuple[int, int] = (0, 0)
    reference_spanning_pairs: Tuple[int, int] = (0, 0)
    consensus: Tuple[str, ...] = ()

    @property
    def evidence(self) -> Tuple[Evidence, ...]:
        return self.assemblies + self.soft_clips + self.read_pairs


_KIND_FIELD = {
    EVIDENCE_KIND.ASSEMBLY: 'assemblies',
    EVIDENCE_KIND.SOFT_CLIP: 'soft_clips',
    EVIDENCE_KIND.READ_PAIR: 'read_pairs',
}


def accumulate(acc: CallAccumulator, evidence: Evidence) -> CallAccumulator:
    """
    add a single evidence item to the accumulator

    Raises:
        InvariantViolationError: the evidence does not overlap the anchor of the call
    """
    if not acc.anchor.overlaps(evidence.breakend):
        raise InvariantViolationError(
            'evidence {} at {} does not overlap the call anchor {}'.format(
                evidence.evidence_id, evidence.breakend, acc.anchor
            )
        )
    attr = _KIND_FIELD[evidence.kind]
    return replace(acc, **{attr: getattr(acc, attr) + (evidence,)})


@dataclass(frozen=True)
class StructuralVariantCall:
    call_id: str
    locus: BreakendSummary
    anchor: BreakendSummary
    untemplated_sequence: Optional[str]
    attributes: Dict[str, List] = field(compare=True, hash=False)
    reference_read_count: List[int] = field(default_factory=list, hash=False)
    reference_spanning_pair_count: List[int] = field(default_factory=list, hash=False)
    assembly_llr: float = 0
    softclip_llr: List[float] = field(default_factory=list, hash=False)
    readpair_llr: List[float] = field(default_factory=list, hash=False)
    log_likelihood_ratio: float = 0
    quality: float = 0
    somatic_pvalue: float = 1
    somatic: bool = False
    evidence_ids: Tuple[str, ...] = ()
    filters: Tuple[str, ...] = ()

    @property
    def is_breakpoint(self) -> bool:
        return self.locus.is_breakpoint

    def flatten(self, reference=None) -> Dict:
        """
        the call as a single row for tabbed output, list values are joined by semi-colons
        """
        row = {
            COLUMNS.call_id: self.call_id,
            COLUMNS.untemplated_seq: self.untemplated_sequence,
            COLUMNS.log_likelihood_ratio: self.log_likelihood_ratio,
            COLUMNS.quality: self.quality,
            COLUMNS.assembly_llr: self.assembly_llr,
            COLUMNS.softclip_llr: self.softclip_llr,
            COLUMNS.readpair_llr: self.readpair_llr,
            COLUMNS.reference_read_count: self.reference_read_count,
            COLUMNS.reference_spanning_pair_count: self.reference_spanning_pair_count,
            COLUMNS.somatic_pvalue: self.somatic_pvalue,
            COLUMNS.somatic: self.somatic,
            COLUMNS.filters: self.filters,
            COLUMNS.evidence_ids: self.evidence_ids,
        }
        row.update(self.locus.to_dict())
        if reference is not None:
            row[COLUMNS.reference_name] = reference.name(self.locus.reference_index)
            if self.locus.is_breakpoint:
                row[COLUMNS.reference_name2] = reference.name(self.locus.reference_index2)  # type: ignore
        row.update(self.attributes)
        for key, value in row.items():
            if isinstance(value, (list, tuple)):
                row[key] = ';'.join(str(v) for v in value)
        return row


def call_identifier(locus: BreakendSummary, reference=None) -> str:
    """
    Example:
        >>> call_identifier(BreakendSummary(0, 'f', 10, 12))
        'call0:10-12f'
    """
    return 'call' + locus.name(reference)


def unique_supporting_evidence(assemblies: Sequence[Evidence]) -> List[Evidence]:
    seen = {}
    for assembly in assemblies:
        for item in getattr(assembly, 'supporting_evidence', ()):
            seen.setdefault((item.kind, item.evidence_id, item.source), item)
    return [seen[key] for key in sorted(seen, key=lambda k: (k[1], k[0], k[2].name))]


def assembly_attributes(assemblies: Sequence[Evidence]) -> Dict[str, List]:
    supporting = unique_supporting_evidence(assemblies)
    read_pairs = [e for e in supporting if e.kind == EVIDENCE_KIND.READ_PAIR]
    soft_clips = [e for e in supporting if e.kind == EVIDENCE_KIND.SOFT_CLIP]
    return {
        ATTR.ASSEMBLY_EVIDENCE_COUNT: aggregate(assemblies, lambda e: 1),
        ATTR.ASSEMBLY_MAPPED: aggregate(assemblies, lambda e: int(e.is_breakpoint)),
        ATTR.ASSEMBLY_MAPQ_REMOTE_MAX: aggregate(assemblies, lambda e: e.remote_mapq or 0, max_values),
        ATTR.ASSEMBLY_MAPQ_REMOTE_TOTAL: aggregate(assemblies, lambda e: e.remote_mapq or 0),
        ATTR.ASSEMBLY_LENGTH_LOCAL_MAX: aggregate(assemblies, lambda e: e.anchor_length, max_values),
        ATTR.ASSEMBLY_LENGTH_REMOTE_MAX: aggregate(assemblies, lambda e: len(e.breakend_sequence), max_values),
        ATTR.ASSEMBLY_BASE_COUNT: aggregate(supporting, lambda e: len(e.sequence or '')),
        ATTR.ASSEMBLY_READPAIR_COUNT: aggregate(read_pairs, lambda e: 1),
        ATTR.ASSEMBLY_READPAIR_LENGTH_MAX: aggregate(read_pairs, lambda e: len(e.sequence or ''), max_values),
        ATTR.ASSEMBLY_SOFTCLIP_COUNT: aggregate(soft_clips, lambda e: 1),
        ATTR.ASSEMBLY_SOFTCLIP_CLIPLENGTH_TOTAL: aggregate(soft_clips, lambda e: len(e.breakend_sequence)),
        ATTR.ASSEMBLY_SOFTCLIP_CLIPLENGTH_MAX: aggregate(
            soft_clips, lambda e: len(e.breakend_sequence), max_values
        ),
    }


def readpair_attributes(read_pairs: Sequence[Evidence]) -> Dict[str, List]:
    return {
        ATTR.READPAIR_EVIDENCE_COUNT: aggregate(read_pairs, lambda e: 1),
        ATTR.READPAIR_MAPPED_READPAIR: aggregate(read_pairs, lambda e: int(e.is_breakpoint)),
        ATTR.READPAIR_MAPQ_LOCAL_MAX: aggregate(read_pairs, lambda e: e.local_mapq, max_values),
        ATTR.READPAIR_MAPQ_LOCAL_TOTAL: aggregate(read_pairs, lambda e: e.local_mapq),
        ATTR.READPAIR_MAPQ_REMOTE_MAX: aggregate(read_pairs, lambda e: e.remote_mapq or 0, max_values),
        ATTR.READPAIR_MAPQ_REMOTE_TOTAL: aggregate(read_pairs, lambda e: e.remote_mapq or 0),
    }


def softclip_attributes(soft_clips: Sequence[Evidence]) -> Dict[str, List]:
    return {
        ATTR.SOFTCLIP_EVIDENCE_COUNT: aggregate(soft_clips, lambda e: 1),
        ATTR.SOFTCLIP_MAPPED: aggregate(soft_clips, lambda e: int(e.is_breakpoint)),
        ATTR.SOFTCLIP_MAPQ_REMOTE_TOTAL: aggregate(soft_clips, lambda e: e.remote_mapq or 0),
        ATTR.SOFTCLIP_MAPQ_REMOTE_MAX: aggregate(soft_clips, lambda e: e.remote_mapq or 0, max_values),
        ATTR.SOFTCLIP_LENGTH_REMOTE_TOTAL: aggregate(soft_clips, lambda e: len(e.breakend_sequence)),
        ATTR.SOFTCLIP_LENGTH_REMOTE_MAX: aggregate(soft_clips, lambda e: len(e.breakend_sequence), max_values),
    }


def split_llr(items: Sequence[Evidence], scores: Dict[Evidence, float], carried: Tuple[float, float]) -> List[float]:
    """
    [normal, tumour] log-likelihood ratio. Items without a tagged source count as normal
    """
    normal, tumour = carried
    for item in items:
        if item.source.tumour:
            tumour += scores[item]
        else:
            normal += scores[item]
    return [normal, tumour]


def make_call(
    acc: CallAccumulator,
    reference=None,
    scorer: Optional[LikelihoodScorer] = None,
    somatic_model: Optional[SomaticModel] = None,
    somatic_pvalue_threshold: float = 0.001,
) -> StructuralVariantCall:
    """
    convert the accumulated evidence into a call

    Args:
        acc: the accumulated evidence
        reference (ReferenceLookup): used to name the reference sequences in the call identifier
        scorer: gives the log-likelihood ratio of a single evidence item
        somatic_model: gives the somatic p-value from the [normal, tumour] support and reference counts
        somatic_pvalue_threshold: calls with a p-value below this are flagged as somatic
    """
    scorer = PhredLikelihoodScorer() if scorer is None else scorer
    somatic_model = FisherSomaticModel() if somatic_model is None else somatic_model
    scores = {e: scorer(e) for e in acc.evidence}

    assemblies = sorted(acc.assemblies, key=lambda e: assembly_sort_key(e, scores[e]))
    soft_clips = sorted(acc.soft_clips, key=lambda e: softclip_sort_key(e, scores[e]))
    read_pairs = sorted(acc.read_pairs, key=lambda e: (-scores[e], e.evidence_id))

    locus = acc.anchor
    untemplated = None
    best = next((e for e in assemblies if e.is_breakpoint), None)
    if best is None:
        best = next((e for e in soft_clips if e.is_breakpoint), None)
    if best is not None:
        locus = best.breakend
        untemplated = best.untemplated_sequence or ''

    attributes: Dict[str, List] = {}
    attributes.update(assembly_attributes(assemblies))
    attributes.update(readpair_attributes(read_pairs))
    attributes.update(softclip_attributes(soft_clips))
    attributes[ATTR.ASSEMBLY_CONSENSUS] = list(acc.consensus) + [e.sequence or '' for e in assemblies]
    attributes[ATTR.ASSEMBLY_PROGRAM] = [ASSEMBLY_PROGRAM_NAME for e in assemblies]

    assembly_llr = acc.assembly_llr + sum(scores[e] for e in assemblies)
    softclip_llr = split_llr(soft_clips, scores, acc.softclip_llr)
    readpair_llr = split_llr(read_pairs, scores, acc.readpair_llr)
    llr = assembly_llr + sum(softclip_llr) + sum(readpair_llr)

    direct = list(soft_clips) + list(read_pairs)
    direct_ids = {(e.kind, e.evidence_id) for e in direct}
    reads = direct + [e for e in unique_supporting_evidence(assemblies) if (e.kind, e.evidence_id) not in direct_ids]
    support = aggregate(reads, lambda e: 1)
    if len(support) == 2:
        reference_reads = list(acc.reference_reads)
        reference_pairs = list(acc.reference_spanning_pairs)
    else:
        reference_reads = [sum(acc.reference_reads)]
        reference_pairs = [sum(acc.reference_spanning_pairs)]
    pvalue = somatic_model(support, [r + p for r, p in zip(reference_reads, reference_pairs)])

    filters: Tuple[str, ...] = ()
    if assemblies and not direct and all(getattr(e, 'filters', ()) for e in assemblies):
        filters = tuple(sorted({f for e in assemblies for f in e.filters}))  # type: ignore

    call = StructuralVariantCall(
        call_id=call_identifier(acc.anchor, reference),
        locus=locus,
        anchor=acc.anchor,
        untemplated_sequence=untemplated,
        attributes=attributes,
        reference_read_count=reference_reads,
        reference_spanning_pair_count=reference_pairs,
        assembly_llr=assembly_llr,
        softclip_llr=softclip_llr,
        readpair_llr=readpair_llr,
        log_likelihood_ratio=llr,
        quality=llr_to_phred(llr),
        somatic_pvalue=pvalue,
        somatic=pvalue < somatic_pvalue_threshold,
        evidence_ids=tuple(sorted(e.evidence_id for e in acc.evidence)),
        filters=filters,
    )
    return call


class CallBuilder:
    """
    collects the evidence for a single call. Evidence must all be added by the owner of the builder
    before the call is made, the builder is not safe to share between threads

    Example:
        >>> call = CallBuilder(anchor).add_evidence(e1).add_evidence(e2).make()
    """

    def __init__(
        self,
        anchor: BreakendSummary,
        reference=None,
        scorer: Optional[LikelihoodScorer] = None,
        somatic_model: Optional[SomaticModel] = None,
        somatic_pvalue_threshold: float = 0.001,
        accumulator: Optional[CallAccumulator] = None,
    ):
        self.accumulator = CallAccumulator(anchor) if accumulator is None else accumulator
        self.reference = reference
        self.scorer = scorer
        self.somatic_model = somatic_model
        self.somatic_pvalue_threshold = somatic_pvalue_threshold

    @classmethod
    def from_call(cls, call: StructuralVariantCall, **kwargs) -> 'CallBuilder':
        """
        continue building from an existing call, its scores and consensus sequences are carried forward
        """
        softclip = list(call.softclip_llr) + [0] * (2 - len(call.softclip_llr))
        readpair = list(call.readpair_llr) + [0] * (2 - len(call.readpair_llr))
        acc = CallAccumulator(
            call.locus,
            assembly_llr=call.assembly_llr,
            softclip_llr=(softclip[0], softclip[1]),
            readpair_llr=(readpair[0], readpair[1]),
            consensus=tuple(call.attributes.get(ATTR.ASSEMBLY_CONSENSUS, ())),
        )
        return cls(call.locus, accumulator=acc, **kwargs)

    def add_evidence(self, evidence: Evidence) -> 'CallBuilder':
        self.accumulator = accumulate(self.accumulator, evidence)
        return self

    def reference_reads(self, normal: int, tumour: int) -> 'CallBuilder':
        self.accumulator = replace(self.accumulator, reference_reads=(normal, tumour))
        return self

    def reference_spanning_pairs(self, normal: int, tumour: int) -> 'CallBuilder':
        self.accumulator = replace(self.accumulator, reference_spanning_pairs=(normal, tumour))
        return self

    def make(self) -> StructuralVariantCall:
        return make_call(
            self.accumulator,
            reference=self.reference,
            scorer=self.scorer,
            somatic_model=self.somatic_model,
            somatic_pvalue_threshold=self.somatic_pvalue_threshold,
        )


def group_evidence(evidence: Iterable[Evidence], scorer: Optional[LikelihoodScorer] = None) -> List[CallAccumulator]:
    """
    greedily group evidence into calls. Evidence is considered in priority order (assemblies, soft clips
    then read pairs with breakpoints and higher scores first) and added to the first call whose anchor it
    overlaps. Evidence which overlaps no existing call becomes the anchor of a new one
    """
    scorer = PhredLikelihoodScorer() if scorer is None else scorer
    items = list(evidence)
    scores = {e: scorer(e) for e in items}
    groups: List[CallAccumulator] = []
    for item in sorted(items, key=lambda e: anchor_priority_key(e, scores[e])):
        for index, acc in enumerate(groups):
            if acc.anchor.overlaps(item.breakend):
                groups[index] = accumulate(acc, item)
                break
        else:
            groups.append(accumulate(CallAccumulator(item.breakend), item))
    return groups


def call_variants(
    evidence: Iterable[Evidence],
    reference=None,
    scorer: Optional[LikelihoodScorer] = None,
    somatic_model: Optional[SomaticModel] = None,
    somatic_pvalue_threshold: float = 0.001,
    reference_counter=None,
) -> List[StructuralVariantCall]:
    """
    group evidence by locus and make one call per group

    Args:
        reference_counter: called with the anchor of each call, returns the (normal, tumour) reference read and spanning pair counts

    Returns:
        the calls sorted by reference index and position
    """
    calls = []
    for acc in group_evidence(evidence, scorer):
        if reference_counter is not None:
            reads, pairs = reference_counter(acc.anchor)
            acc = replace(acc, reference_reads=tuple(reads), reference_spanning_pairs=tuple(pairs))
        calls.append(make_call(acc, reference, scorer, somatic_model, somatic_pvalue_threshold))
    calls.sort(key=lambda c: (c.locus.reference_index, c.locus.start, c.locus.end, c.call_id))
    logger.debug(f'made {len(calls)} calls')
    return calls
