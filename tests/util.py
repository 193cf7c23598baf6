import os
import random

import pysam
import pytest
from svasm.breakpoint import BreakendSummary, BreakpointSummary
from svasm.constants import DIRECTION
from svasm.evidence import AssemblyEvidence, EvidenceSource, ReadPairEvidence, SoftClipEvidence


long_running_test = pytest.mark.skipif(
    os.environ.get('RUN_FULL') != '1',
    reason='Only running FAST tests subset',
)

NORMAL = EvidenceSource('normal', False)
TUMOUR = EvidenceSource('tumour', True)
UNTAGGED = EvidenceSource('library')


def random_sequence(length, seed=0):
    rng = random.Random(seed)
    return ''.join(rng.choice('ACGT') for _ in range(length))


def soft_clip(
    evidence_id,
    start_position,
    sequence,
    anchor_length,
    direction=DIRECTION.FWD,
    reference_index=0,
    source=UNTAGGED,
    quality=40,
    mapq=40,
    **kwargs
):
    """
    soft clip evidence where the sequence starts at start_position
    """
    if direction == DIRECTION.FWD:
        position = start_position + anchor_length - 1
    else:
        position = start_position + len(sequence) - anchor_length
    return SoftClipEvidence(
        evidence_id,
        source,
        BreakendSummary(reference_index, direction, position),
        sequence=sequence,
        quality=[quality] * len(sequence),
        anchor_length=anchor_length,
        start_position=start_position,
        local_mapq=mapq,
        **kwargs
    )


def read_pair(
    evidence_id,
    start,
    end=None,
    direction=DIRECTION.FWD,
    reference_index=0,
    source=UNTAGGED,
    mapq=40,
    sequence=None,
    remote=None,
    remote_mapq=None,
    **kwargs
):
    breakend = BreakendSummary(reference_index, direction, start, end)
    if remote is not None:
        breakend = BreakpointSummary.from_breakends(breakend, remote)
    return ReadPairEvidence(
        evidence_id,
        source,
        breakend,
        sequence=sequence,
        quality=[30] * len(sequence) if sequence else None,
        local_mapq=mapq,
        remote_mapq=remote_mapq,
        **kwargs
    )


def assembly(evidence_id, breakend, sequence='ACGT', llr=10.0, supporting_evidence=(), **kwargs):
    return AssemblyEvidence(
        evidence_id,
        EvidenceSource('assembly'),
        breakend,
        sequence=sequence,
        log_likelihood_ratio=llr,
        supporting_evidence=supporting_evidence,
        **kwargs
    )


def mock_header(*lengths):
    return pysam.AlignmentHeader.from_dict(
        {'HD': {'VN': '1.6', 'SO': 'coordinate'}, 'SQ': [{'SN': 'chr{}'.format(i + 1), 'LN': length} for i, length in enumerate(lengths)]}
    )


def mock_read(
    header,
    query_name,
    sequence,
    reference_id=0,
    reference_start=0,
    cigar=None,
    flag=0,
    mapping_quality=60,
    next_reference_id=-1,
    next_reference_start=-1,
    template_length=0,
    quality_char='I',
):
    read = pysam.AlignedSegment(header)
    read.query_name = query_name
    read.query_sequence = sequence
    read.flag = flag
    read.reference_id = reference_id
    read.reference_start = reference_start
    read.mapping_quality = mapping_quality
    if cigar is not None:
        read.cigartuples = cigar
    read.next_reference_id = next_reference_id
    read.next_reference_start = next_reference_start
    read.template_length = template_length
    read.query_qualities = pysam.qualitystring_to_array(quality_char * len(sequence))
    return read


def write_bam(filename, header, reads):
    """
    write the reads to a coordinate sorted and indexed bam file
    """
    reads = sorted(reads, key=lambda r: (r.reference_id if r.reference_id >= 0 else float('inf'), r.reference_start))
    with pysam.AlignmentFile(filename, 'wb', header=header) as fh:
        for read in reads:
            fh.write(read)
    pysam.index(filename)
    return filename
