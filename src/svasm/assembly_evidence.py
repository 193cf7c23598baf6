from collections import Counter
from typing import Iterable, List, Optional, Tuple

from .assemble import Contig
from .breakpoint import BreakendSummary, BreakpointSummary
from .constants import DIRECTION
from .evidence import ASSEMBLY_SOURCE, AssemblyEvidence, Evidence
from .interval import Interval
from .models import phred_to_llr


def unanchored_breakend(evidence: Iterable[Evidence]) -> BreakendSummary:
    """
    the breakend of a contig without any reference bases. The direction is the most common among the
    supporting evidence (forward on a tie) and the interval is the union of the supporting evidence of that direction
    """
    evidence = list(evidence)
    if not evidence:
        raise AttributeError('cannot place an unanchored contig without supporting evidence')
    counts = Counter(e.direction for e in evidence)
    direction = DIRECTION.FWD if counts[DIRECTION.FWD] >= counts[DIRECTION.BWD] else DIRECTION.BWD
    loci = [e.breakend.local for e in evidence if e.direction == direction]
    interval = Interval.union(*loci)
    return BreakendSummary(loci[0].reference_index, direction, interval.start, interval.end)


def contig_breakend(contig: Contig) -> Tuple[BreakendSummary, str, int, Optional[str]]:
    """
    place a contig on the reference from its anchored bases

    Returns:
        the breakend, its direction, the number of anchored bases and the untemplated sequence (breakpoints only)
    """
    length = len(contig.sequence)
    leading, trailing = contig.leading_reference, contig.trailing_reference
    if leading and trailing:
        fwd = contig.start_position + leading - 1
        bwd = contig.start_position + length - trailing
        breakend = BreakpointSummary(
            contig.reference_index, DIRECTION.FWD, fwd, fwd, contig.reference_index, DIRECTION.BWD, bwd, bwd
        )
        return breakend, DIRECTION.FWD, leading, contig.sequence[leading : length - trailing]
    elif leading:
        position = contig.start_position + leading - 1
        return BreakendSummary(contig.reference_index, DIRECTION.FWD, position), DIRECTION.FWD, leading, None
    elif trailing:
        position = contig.start_position + length - trailing
        return BreakendSummary(contig.reference_index, DIRECTION.BWD, position), DIRECTION.BWD, trailing, None
    breakend = unanchored_breakend(contig.evidence)
    return breakend, breakend.direction, 0, None


def contig_log_likelihood_ratio(contig: Contig, k: int) -> float:
    """
    each base contributes to k kmers so the novel weight is scaled down by k to give a per-base phred sum
    """
    return phred_to_llr(contig.novel_weight / k)


def contig_to_evidence(contig: Contig, k: int, ordinal: int = 0) -> AssemblyEvidence:
    """
    convert an assembled contig to evidence for the call builder

    Args:
        contig: the contig to convert
        k: the kmer size the contig was assembled with
        ordinal: distinguishes contigs starting at the same position
    """
    breakend, _, anchor_length, untemplated = contig_breakend(contig)
    local_mapq = max([e.local_mapq for e in contig.evidence if e.anchor_length > 0], default=0)
    return AssemblyEvidence(
        'asm{}-{}-{}'.format(contig.reference_index, contig.start_position, ordinal),
        ASSEMBLY_SOURCE,
        breakend,
        sequence=contig.sequence,
        quality=contig.quality,
        anchor_length=anchor_length,
        start_position=contig.start_position,
        local_mapq=local_mapq,
        untemplated_sequence=untemplated,
        log_likelihood_ratio=contig_log_likelihood_ratio(contig, k),
        supporting_evidence=contig.evidence,
        filters=contig.filters,
    )


def contigs_to_evidence(contigs: List[Contig], k: int) -> List[AssemblyEvidence]:
    """
    convert the contigs of one partition, numbering the contigs which share a start position
    """
    result = []
    seen: Counter = Counter()
    for contig in contigs:
        key = (contig.reference_index, contig.start_position)
        result.append(contig_to_evidence(contig, k, seen[key]))
        seen[key] += 1
    return result
