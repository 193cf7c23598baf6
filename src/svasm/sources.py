"""
Collaborators of the caller: where evidence comes from and how reference sequences are named
"""
import abc
import heapq
from typing import Dict, Iterable, Iterator, List, NamedTuple, Optional, Sequence, Tuple

import pysam

from .breakpoint import BreakendSummary, BreakpointSummary
from .constants import CIGAR, DIRECTION, reverse_complement
from .evidence import Evidence, EvidenceSource, ReadPairEvidence, SoftClipEvidence
from .util import logger


class Partition(NamedTuple):
    """
    a region of a reference sequence which is processed independently (both ends inclusive)
    """

    reference_index: int
    start: int
    end: int

    def __contains__(self, position):  # type: ignore
        return self.start <= position <= self.end


class ReferenceLookup(abc.ABC):
    @abc.abstractmethod
    def name(self, reference_index: int) -> str:
        pass

    @abc.abstractmethod
    def length(self, reference_index: int) -> int:
        pass

    @abc.abstractmethod
    def count(self) -> int:
        pass

    def partitions(self, partition_size: Optional[int] = None) -> List[Partition]:
        """
        split each reference sequence into partitions of at most partition_size positions
        """
        result = []
        for reference_index in range(self.count()):
            length = self.length(reference_index)
            size = partition_size if partition_size else max(length, 1)
            for start in range(1, max(length, 1) + 1, size):
                result.append(Partition(reference_index, start, min(start + size - 1, max(length, 1))))
        return result


class SequenceDictionary(ReferenceLookup):
    """
    reference sequence names and lengths in index order
    """

    def __init__(self, sequences: Sequence[Tuple[str, int]]):
        self.sequences = [(str(name), int(length)) for name, length in sequences]

    @classmethod
    def from_bam(cls, filename: str) -> 'SequenceDictionary':
        with pysam.AlignmentFile(filename, 'rb') as fh:
            return cls(list(zip(fh.references, fh.lengths)))

    def name(self, reference_index: int) -> str:
        return self.sequences[reference_index][0]

    def length(self, reference_index: int) -> int:
        return self.sequences[reference_index][1]

    def count(self) -> int:
        return len(self.sequences)

    def index(self, name: str) -> int:
        for index, (seq_name, _) in enumerate(self.sequences):
            if seq_name == name:
                return index
        raise KeyError('reference sequence not found in the sequence dictionary', name)


class ReadEvidenceSource(abc.ABC):
    """
    produces the evidence of a single partition, ordered by non-decreasing start position
    """

    @abc.abstractmethod
    def fetch(self, partition: Partition) -> Iterator[Evidence]:
        pass


def evidence_order_key(evidence: Evidence):
    return (evidence.start_position, evidence.evidence_id)


def merge_sources(sources: Iterable[ReadEvidenceSource], partition: Partition) -> Iterator[Evidence]:
    """
    merge the position sorted evidence of several sources for a partition
    """
    return heapq.merge(*[s.fetch(partition) for s in sources], key=evidence_order_key)


class ListEvidenceSource(ReadEvidenceSource):
    """
    evidence held in memory. Evidence belongs to the partition containing the start of its breakend
    """

    def __init__(self, evidence: Iterable[Evidence]):
        self.evidence = sorted(evidence, key=evidence_order_key)

    def fetch(self, partition: Partition) -> Iterator[Evidence]:
        for item in self.evidence:
            if item.breakend.reference_index == partition.reference_index and item.breakend.start in partition:
                yield item


def read_segment(read: pysam.AlignedSegment) -> int:
    return 2 if read.is_read2 else 1


class BamEvidenceSource(ReadEvidenceSource):
    """
    extracts soft clip and read pair evidence from a coordinate sorted and indexed bam file
    """

    def __init__(
        self,
        filename: str,
        source: EvidenceSource,
        reference: Optional[ReferenceLookup] = None,
        min_mapping_quality: int = 0,
        min_clip_length: int = 5,
        max_fragment_size: int = 600,
    ):
        self.filename = filename
        self.source = source
        self.reference = reference
        self.min_mapping_quality = min_mapping_quality
        self.min_clip_length = min_clip_length
        self.max_fragment_size = max_fragment_size

    def _id(self, prefix: str, read: pysam.AlignedSegment) -> str:
        return '{}:{}{}/{}'.format(self.source.name, prefix, read.query_name, read_segment(read))

    def soft_clips(self, read: pysam.AlignedSegment) -> List[SoftClipEvidence]:
        """
        evidence for the soft clipped ends of an aligned read. Positions are 1-based
        """
        result = []
        cigar = read.cigartuples or []
        sequence = read.query_sequence
        if not cigar or not sequence:
            return result
        quality = list(read.query_qualities) if read.query_qualities is not None else None
        aligned_length = read.query_alignment_end - read.query_alignment_start
        if cigar[-1][0] == CIGAR.S and cigar[-1][1] >= self.min_clip_length:
            start = read.query_alignment_start
            result.append(
                SoftClipEvidence(
                    self._id('f', read),
                    self.source,
                    BreakendSummary(read.reference_id, DIRECTION.FWD, read.reference_end),
                    sequence=sequence[start:],
                    quality=quality[start:] if quality is not None else None,
                    anchor_length=aligned_length,
                    start_position=read.reference_start + 1,
                    local_mapq=read.mapping_quality,
                )
            )
        if cigar[0][0] == CIGAR.S and cigar[0][1] >= self.min_clip_length:
            end = read.query_alignment_end
            result.append(
                SoftClipEvidence(
                    self._id('b', read),
                    self.source,
                    BreakendSummary(read.reference_id, DIRECTION.BWD, read.reference_start + 1),
                    sequence=sequence[:end],
                    quality=quality[:end] if quality is not None else None,
                    anchor_length=aligned_length,
                    start_position=read.reference_start + 1 - read.query_alignment_start,
                    local_mapq=read.mapping_quality,
                )
            )
        return result

    def _local_breakend(self, read: pysam.AlignedSegment) -> Tuple[BreakendSummary, int, int]:
        """
        the interval the break must fall in for the fragment to be no longer than the maximum fragment size

        Returns:
            the breakend, the expected start position of the mate sequence and its error width
        """
        read_length = read.query_length or (read.reference_end - read.reference_start)
        if read.is_reverse:
            low = read.reference_end - self.max_fragment_size + 1
            high = read.reference_start
            breakend = BreakendSummary(read.reference_id, DIRECTION.BWD, max(1, low), max(1, high, low))
            mate_low, mate_high = low, read.reference_end - read_length
        else:
            low = read.reference_end
            high = read.reference_start + self.max_fragment_size
            breakend = BreakendSummary(read.reference_id, DIRECTION.FWD, low, max(low, high))
            mate_low, mate_high = read.reference_start + 1, read.reference_start + 1 + self.max_fragment_size - read_length
        if mate_high < mate_low:
            mate_low, mate_high = mate_high, mate_low
        return breakend, (mate_low + mate_high) // 2, (mate_high - mate_low + 1) // 2

    def read_pair(self, read: pysam.AlignedSegment, mate: Optional[pysam.AlignedSegment] = None) -> Optional[ReadPairEvidence]:
        """
        evidence for a read whose mate is unmapped (the mate sequence is assembled) or mapped discordantly
        """
        if read.mate_is_unmapped:
            breakend, start, width = self._local_breakend(read)
            sequence = None
            quality = None
            if mate is not None and mate.query_sequence:
                sequence = mate.query_sequence
                quality = list(mate.query_qualities) if mate.query_qualities is not None else None
                if mate.is_reverse == read.is_reverse:
                    sequence = reverse_complement(sequence)
                    quality = quality[::-1] if quality is not None else None
            return ReadPairEvidence(
                self._id('rp', read),
                self.source,
                breakend,
                sequence=sequence,
                quality=quality,
                start_position=start,
                error_width=width,
                local_mapq=read.mapping_quality,
            )
        if not self.is_discordant(read):
            return None
        local, _, _ = self._local_breakend(read)
        if read.mate_is_reverse:
            remote_start, remote_end = max(1, read.next_reference_start + 1 - self.max_fragment_size), read.next_reference_start + 1
            remote_direction = DIRECTION.BWD
        else:
            remote_start, remote_end = read.next_reference_start + 1, read.next_reference_start + self.max_fragment_size
            remote_direction = DIRECTION.FWD
        breakpoint = BreakpointSummary.from_breakends(
            local, BreakendSummary(read.next_reference_id, remote_direction, remote_start, remote_end)
        )
        return ReadPairEvidence(
            self._id('rp', read),
            self.source,
            breakpoint,
            local_mapq=read.mapping_quality,
            remote_mapq=read.get_tag('MQ') if read.has_tag('MQ') else None,
        )

    def is_discordant(self, read: pysam.AlignedSegment) -> bool:
        if not read.is_paired or read.mate_is_unmapped:
            return False
        if read.reference_id != read.next_reference_id:
            return True
        if read.is_reverse == read.mate_is_reverse:
            return True
        return abs(read.template_length) > self.max_fragment_size

    def usable(self, read: pysam.AlignedSegment) -> bool:
        return not (
            read.is_unmapped
            or read.is_secondary
            or read.is_supplementary
            or read.is_duplicate
            or read.is_qcfail
            or read.mapping_quality < self.min_mapping_quality
        )

    def fetch(self, partition: Partition) -> Iterator[Evidence]:
        """
        Raises:
            OSError: the bam file cannot be read
        """
        evidence: List[Evidence] = []
        anchored: Dict[Tuple[str, int], pysam.AlignedSegment] = {}
        unmapped_mates: Dict[Tuple[str, int], pysam.AlignedSegment] = {}
        with pysam.AlignmentFile(self.filename, 'rb') as fh:
            contig = fh.get_reference_name(partition.reference_index)
            # reads up to a fragment away from the partition may have their breakend inside it
            start = max(0, partition.start - 1 - self.max_fragment_size)
            end = min(fh.get_reference_length(contig), partition.end + self.max_fragment_size)
            for read in fh.fetch(contig, start, end):
                if read.is_unmapped:
                    # unmapped mates are placed at the position of the anchored read
                    unmapped_mates[(read.query_name, read_segment(read))] = read
                    continue
                if not self.usable(read):
                    continue
                evidence.extend(self.soft_clips(read))
                if read.is_paired and read.mate_is_unmapped:
                    anchored[(read.query_name, 3 - read_segment(read))] = read
                    continue
                pair = self.read_pair(read)
                if pair is not None:
                    evidence.append(pair)
        for key, read in anchored.items():
            pair = self.read_pair(read, unmapped_mates.get(key))
            if pair is not None:
                evidence.append(pair)
        # evidence belongs to the partition containing the start of its breakend
        evidence = [e for e in evidence if e.breakend.start in partition]
        evidence.sort(key=evidence_order_key)
        logger.debug(
            f'{self.source.name}: extracted {len(evidence)} evidence from {partition.reference_index}:{partition.start}-{partition.end}'
        )
        return iter(evidence)


class BamReferenceCounter:
    """
    counts the reads and read pairs which support the reference allele across a breakend
    """

    def __init__(self, normal_bams: Sequence[str] = (), tumour_bams: Sequence[str] = (), max_fragment_size: int = 600):
        self.normal_bams = list(normal_bams)
        self.tumour_bams = list(tumour_bams)
        self.max_fragment_size = max_fragment_size

    def _count(self, filenames: Sequence[str], breakend: BreakendSummary) -> Tuple[int, int]:
        # the reference allele spans the break between the anchored base and the next base
        low = breakend.start if breakend.direction == DIRECTION.FWD else breakend.start - 1
        high = low + 1
        reads = pairs = 0
        for filename in filenames:
            with pysam.AlignmentFile(filename, 'rb') as fh:
                contig = fh.get_reference_name(breakend.reference_index)
                for read in fh.fetch(contig, max(0, low - self.max_fragment_size), high + self.max_fragment_size):
                    if read.is_unmapped or read.is_secondary or read.is_supplementary or read.is_duplicate:
                        continue
                    if read.reference_start + 1 <= low and read.reference_end >= high:
                        reads += 1
                    elif (
                        read.is_proper_pair
                        and not read.is_reverse
                        and 0 < read.template_length <= self.max_fragment_size
                        and read.reference_end < high
                        and read.reference_start + read.template_length >= high
                    ):
                        pairs += 1
        return reads, pairs

    def __call__(self, breakend: BreakendSummary) -> Tuple[Tuple[int, int], Tuple[int, int]]:
        normal_reads, normal_pairs = self._count(self.normal_bams, breakend)
        tumour_reads, tumour_pairs = self._count(self.tumour_bams, breakend)
        return (normal_reads, tumour_reads), (normal_pairs, tumour_pairs)
