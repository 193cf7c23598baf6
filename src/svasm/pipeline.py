"""
Runs the assembly and calling of each partition of the genome and merges the results back into
genomic order

Partitions are independent and are submitted to a pool of workers. At most ``max_pending``
partitions are in flight at once, the producer waits on the oldest partition before submitting
another. Results are consumed in partition order, so calls come out in ascending (reference index,
start) order after a merge which holds back any call within a margin (the maximum fragment size)
of the start of the latest partition, since a call locus can reach back that far past the start of
its own partition.
"""
import functools
from collections import deque
from concurrent import futures
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, Iterable, Iterator, List, Optional, Sequence

from .assemble import assemble
from .assembly_evidence import contigs_to_evidence
from .call import StructuralVariantCall, call_variants
from .config import assembly_options
from .constants import EVIDENCE_KIND
from .error import InvariantViolationError
from .evidence import AssemblyEvidence, Evidence
from .fastq import RealignedRecords, apply_realignment, get_encoded_id
from .models import FisherSomaticModel, PhredLikelihoodScorer
from .sources import Partition, ReadEvidenceSource, ReferenceLookup, merge_sources
from .util import logger


@dataclass
class PartitionResult:
    partition: Partition
    evidence_count: int
    assemblies: List[AssemblyEvidence]
    calls: List[StructuralVariantCall]
    soft_clips: List[Evidence] = field(default_factory=list)


def run_partition(
    partition: Partition,
    sources: Sequence[ReadEvidenceSource],
    reference: ReferenceLookup,
    config: Dict,
    reference_counter=None,
    realigned: Optional[RealignedRecords] = None,
) -> PartitionResult:
    """
    assemble and call a single partition

    Args:
        realigned: alignments of the breakend sequences of this run, used to resolve soft clips and assemblies to breakpoints
    """
    k = config['assembly.kmer_size']
    evidence = list(merge_sources(sources, partition))
    contigs = assemble(
        evidence,
        k,
        reference_index=partition.reference_index,
        window_size=config['assembly.window_size'],
        **assembly_options(config),
    )
    assemblies = contigs_to_evidence(contigs, k)
    if realigned is not None:
        evidence_by_id = {e.evidence_id: e for e in evidence + assemblies}  # type: ignore
        alignments = (
            a for a in realigned.fetch(partition.reference_index) if get_encoded_id(a.query_name) in evidence_by_id
        )
        updated = apply_realignment(evidence_by_id, alignments, config['evidence.min_mapping_quality'])
        evidence = [e for e in updated if e.kind != EVIDENCE_KIND.ASSEMBLY]
        assemblies = [e for e in updated if e.kind == EVIDENCE_KIND.ASSEMBLY]  # type: ignore
    calls = call_variants(
        evidence + assemblies,  # type: ignore
        reference=reference,
        scorer=PhredLikelihoodScorer(config['calling.full_clip_length']),
        somatic_model=FisherSomaticModel(),
        somatic_pvalue_threshold=config['calling.somatic_pvalue_threshold'],
        reference_counter=reference_counter,
    )
    logger.info(
        f'{reference.name(partition.reference_index)}:{partition.start}-{partition.end}: {len(evidence)} evidence, {len(assemblies)} assemblies, {len(calls)} calls'
    )
    soft_clips = [e for e in evidence if e.kind == EVIDENCE_KIND.SOFT_CLIP]
    return PartitionResult(partition, len(evidence), assemblies, calls, soft_clips)


def iter_results(
    partitions: Iterable[Partition],
    func: Callable[[Partition], PartitionResult],
    threads: int = 1,
    max_pending: int = 4,
    executor: str = 'process',
) -> Iterator[PartitionResult]:
    """
    run a function over each partition, yielding the results in partition order

    Args:
        partitions: the partitions to process
        func: processes a single partition, must be picklable for the process executor
        threads: number of workers, partitions are processed inline when 1
        max_pending: largest number of partitions submitted but not yet consumed
        executor: 'process' or 'thread'
    """
    if threads <= 1:
        for partition in partitions:
            yield func(partition)
        return

    pool_type = futures.ProcessPoolExecutor if executor == 'process' else futures.ThreadPoolExecutor
    pool = pool_type(max_workers=threads)
    pending: Deque[futures.Future] = deque()
    try:
        for partition in partitions:
            if len(pending) >= max_pending:
                yield pending.popleft().result()
            pending.append(pool.submit(func, partition))
        while pending:
            yield pending.popleft().result()
    except BaseException:
        for future in pending:
            future.cancel()
        pool.shutdown(wait=True, cancel_futures=True)
        raise
    pool.shutdown(wait=True)


def call_order_key(call: StructuralVariantCall):
    return (call.locus.reference_index, call.locus.start, call.locus.end, call.call_id)


def ordered_calls(results: Iterable[PartitionResult], margin: int = 0) -> Iterator[StructuralVariantCall]:
    """
    merge the calls of consecutive partitions into genomic order

    Args:
        results: partition results in partition order
        margin: furthest a call locus may start before the start of its partition

    Raises:
        InvariantViolationError: a call reaches back further than the margin
    """
    held: List[StructuralVariantCall] = []
    last = None
    for result in results:
        calls = sorted(held + result.calls, key=call_order_key)
        boundary = (result.partition.reference_index, result.partition.start - margin)
        held = []
        for call in calls:
            position = (call.locus.reference_index, call.locus.start)
            if position >= boundary:
                held.append(call)
                continue
            if last is not None and position < last:
                raise InvariantViolationError('calls are not in genomic order', call.call_id, position, last)
            last = position
            yield call
    for call in held:
        position = (call.locus.reference_index, call.locus.start)
        if last is not None and position < last:
            raise InvariantViolationError('calls are not in genomic order', call.call_id, position, last)
        last = position
        yield call


def run(
    sources: Sequence[ReadEvidenceSource],
    reference: ReferenceLookup,
    config: Dict,
    reference_counter=None,
    partitions: Optional[Iterable[Partition]] = None,
    realigned: Optional[RealignedRecords] = None,
) -> Iterator[PartitionResult]:
    """
    assemble and call every partition of the reference

    Returns:
        the result of each partition in partition order
    """
    if partitions is None:
        partitions = reference.partitions(config['pipeline.partition_size'])
    func = functools.partial(
        run_partition,
        sources=list(sources),
        reference=reference,
        config=dict(config),
        reference_counter=reference_counter,
        realigned=realigned,
    )
    return iter_results(
        partitions,
        func,
        threads=config['pipeline.threads'],
        max_pending=config['pipeline.max_pending'],
        executor=config['pipeline.executor'],
    )
