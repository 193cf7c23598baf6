"""
Encoding of breakend sequences for realignment

The breakend sequence of each soft clip or assembly is written as a FASTQ record for an external
aligner. The record name encodes where the evidence came from so the alignments can be matched back
to the evidence: ``<reference index>#<start position>#<evidence id>``
"""
from typing import Dict, Iterable, Iterator, List, Optional

import pysam
from Bio import SeqIO
from Bio.Seq import Seq
from Bio.SeqRecord import SeqRecord

from .breakpoint import BreakendSummary
from .constants import CIGAR, DIRECTION, MAX_PHRED
from .evidence import Evidence
from .util import logger

SEPARATOR = '#'


def realignment_record_id(evidence: Evidence) -> str:
    return SEPARATOR.join(
        [str(evidence.breakend.reference_index), str(evidence.breakend.start), evidence.evidence_id]
    )


def get_encoded_reference_index(record_id: str) -> int:
    return int(record_id.split(SEPARATOR, 2)[0])


def get_encoded_start_position(record_id: str) -> int:
    return int(record_id.split(SEPARATOR, 2)[1])


def get_encoded_id(record_id: str) -> str:
    return record_id.split(SEPARATOR, 2)[2]


def realignment_fastq_record(evidence: Evidence, fallback_base_quality: int = 20) -> Optional[SeqRecord]:
    """
    the record for the breakend sequence of the evidence or None if there is nothing to realign
    """
    sequence = evidence.breakend_sequence
    if not sequence:
        return None
    quality = evidence.breakend_quality
    if quality is None:
        quality = [fallback_base_quality] * len(sequence)
    record = SeqRecord(Seq(sequence), id=realignment_record_id(evidence), description='')
    record.letter_annotations['phred_quality'] = [min(MAX_PHRED, max(0, q)) for q in quality]
    return record


def write_realignment_fastq(evidence: Iterable[Evidence], filename: str, fallback_base_quality: int = 20) -> int:
    """
    Returns:
        the number of records written
    """
    records = [r for r in (realignment_fastq_record(e, fallback_base_quality) for e in evidence) if r is not None]
    logger.info(f'writing: {filename}')
    with open(filename, 'w') as fh:
        SeqIO.write(records, fh, 'fastq')
    return len(records)


def remote_breakend(alignment: pysam.AlignedSegment, evidence: Evidence) -> BreakendSummary:
    """
    the breakend at the start of the realigned breakend sequence

    The breakend sequence of a forward breakend continues the anchored sequence so the remote
    breakend is at the first aligned base of the breakend sequence (or the last when it aligns to
    the reverse strand). The opposite holds for backward breakends
    """
    first_base = alignment.reference_start + 1
    last_base = alignment.reference_end
    at_start = (evidence.direction == DIRECTION.FWD) != alignment.is_reverse
    if at_start:
        return BreakendSummary(alignment.reference_id, DIRECTION.BWD, first_base)
    return BreakendSummary(alignment.reference_id, DIRECTION.FWD, last_base)


def untemplated_bases(alignment: pysam.AlignedSegment, evidence: Evidence) -> str:
    """
    the bases of the breakend sequence between the anchor and the realigned portion
    """
    cigar = alignment.cigartuples or []
    sequence = evidence.breakend_sequence
    if evidence.direction == DIRECTION.FWD:
        clip = cigar[0] if not alignment.is_reverse else cigar[-1]
        if clip[0] in {CIGAR.S, CIGAR.H}:
            return sequence[: clip[1]]
        return ''
    clip = cigar[-1] if not alignment.is_reverse else cigar[0]
    if clip[0] in {CIGAR.S, CIGAR.H}:
        return sequence[len(sequence) - clip[1] :]
    return ''


def apply_realignment(
    evidence_by_id: Dict[str, Evidence], alignments: Iterable[pysam.AlignedSegment], min_mapping_quality: int = 0
) -> List[Evidence]:
    """
    upgrade soft clip and assembly evidence to breakpoints using the alignments of their breakend sequences.
    Only the primary alignment of each record is used

    Returns:
        the evidence, realigned where a usable alignment was found, in the original order
    """
    realigned: Dict[str, Evidence] = {}
    for alignment in alignments:
        if alignment.is_unmapped or alignment.is_secondary or alignment.is_supplementary:
            continue
        if alignment.mapping_quality < min_mapping_quality:
            continue
        evidence_id = get_encoded_id(alignment.query_name)
        evidence = evidence_by_id.get(evidence_id)
        if evidence is None:
            logger.warning(f'realignment for unknown evidence {evidence_id}')
            continue
        if not hasattr(evidence, 'with_realignment'):
            continue
        realigned[evidence_id] = evidence.with_realignment(  # type: ignore
            remote_breakend(alignment, evidence),
            alignment.mapping_quality,
            untemplated_bases(alignment, evidence),
        )
    return [realigned.get(key, evidence) for key, evidence in evidence_by_id.items()]


class RealignedRecords:
    """
    the alignments of a realignment FASTQ, read back by the reference sequence of the breakend they were written from.
    Only the file name is held so the reader can be sent to worker processes
    """

    def __init__(self, filename: str):
        self.filename = filename

    def fetch(self, reference_index: int) -> Iterator[pysam.AlignedSegment]:
        with pysam.AlignmentFile(self.filename, check_sq=False) as fh:
            for alignment in fh:
                if get_encoded_reference_index(alignment.query_name) == reference_index:
                    yield alignment
