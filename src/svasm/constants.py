"""
module responsible for the controlled vocabularies and small sequence helpers used throughout the svasm package
"""
import re
from typing import Dict, List

from Bio.Seq import Seq

PROGNAME: str = 'svasm'
EXIT_OK: int = 0
EXIT_ERROR: int = 1


class SvasmNamespace:
    """
    Namespace to hold module constants as class attributes

    Example:
        >>> class THING(SvasmNamespace):
        ...     A = 'a'
        >>> THING.values()
        ['a']
    """

    @classmethod
    def items(cls) -> List:
        return [
            (attr, value)
            for attr, value in vars(cls).items()
            if not attr.startswith('_') and not isinstance(value, (classmethod, staticmethod))
        ]

    @classmethod
    def keys(cls) -> List[str]:
        return [k for k, v in cls.items()]

    @classmethod
    def values(cls) -> List:
        return [v for k, v in cls.items()]

    @classmethod
    def enforce(cls, value):
        """
        checks that the value is a member of the namespace

        Raises:
            KeyError: the value is not a member of the namespace
        """
        if value not in cls.values():
            raise KeyError('value {0} is not a valid member of {1}'.format(repr(value), cls.__name__))
        return value

    @classmethod
    def reverse(cls, value) -> str:
        """
        get the attribute name for a given value
        """
        for attr, val in cls.items():
            if val == value:
                return attr
        raise KeyError('value {0} is not a valid member of {1}'.format(repr(value), cls.__name__))


class DIRECTION(SvasmNamespace):
    """
    holds controlled vocabulary for breakend directions

    Attributes:
        FWD: the breakend is after the anchored sequence wrt the positive/forward strand
        BWD: the breakend is before the anchored sequence wrt the positive/forward strand
    """

    FWD: str = 'f'
    BWD: str = 'b'

    @classmethod
    def opposite(cls, direction: str) -> str:
        return cls.BWD if cls.enforce(direction) == cls.FWD else cls.FWD


class EVIDENCE_KIND(SvasmNamespace):
    """
    holds controlled vocabulary for the kinds of evidence supporting a call
    """

    SOFT_CLIP: str = 'softclip'
    READ_PAIR: str = 'readpair'
    ASSEMBLY: str = 'assembly'


class FILTER(SvasmNamespace):
    """
    markers attached to assemblies and calls which did not pass a threshold

    Attributes:
        LOW_SUPPORT: supported by fewer evidence items than the minimum
        LOW_WEIGHT: total kmer weight is lower than the minimum
    """

    LOW_SUPPORT: str = 'LOW_SUPPORT'
    LOW_WEIGHT: str = 'LOW_WEIGHT'


class ATTR(SvasmNamespace):
    """
    names of the per-category aggregated attributes of a call
    """

    ASSEMBLY_EVIDENCE_COUNT: str = 'assembly_evidence_count'
    ASSEMBLY_MAPPED: str = 'assembly_mapped'
    ASSEMBLY_MAPQ_REMOTE_MAX: str = 'assembly_mapq_remote_max'
    ASSEMBLY_MAPQ_REMOTE_TOTAL: str = 'assembly_mapq_remote_total'
    ASSEMBLY_LENGTH_LOCAL_MAX: str = 'assembly_length_local_max'
    ASSEMBLY_LENGTH_REMOTE_MAX: str = 'assembly_length_remote_max'
    ASSEMBLY_BASE_COUNT: str = 'assembly_base_count'
    ASSEMBLY_READPAIR_COUNT: str = 'assembly_readpair_count'
    ASSEMBLY_READPAIR_LENGTH_MAX: str = 'assembly_readpair_length_max'
    ASSEMBLY_SOFTCLIP_COUNT: str = 'assembly_softclip_count'
    ASSEMBLY_SOFTCLIP_CLIPLENGTH_TOTAL: str = 'assembly_softclip_cliplength_total'
    ASSEMBLY_SOFTCLIP_CLIPLENGTH_MAX: str = 'assembly_softclip_cliplength_max'
    ASSEMBLY_CONSENSUS: str = 'assembly_consensus'
    ASSEMBLY_PROGRAM: str = 'assembly_program'
    READPAIR_EVIDENCE_COUNT: str = 'readpair_evidence_count'
    READPAIR_MAPPED_READPAIR: str = 'readpair_mapped_readpair'
    READPAIR_MAPQ_LOCAL_MAX: str = 'readpair_mapq_local_max'
    READPAIR_MAPQ_LOCAL_TOTAL: str = 'readpair_mapq_local_total'
    READPAIR_MAPQ_REMOTE_MAX: str = 'readpair_mapq_remote_max'
    READPAIR_MAPQ_REMOTE_TOTAL: str = 'readpair_mapq_remote_total'
    SOFTCLIP_EVIDENCE_COUNT: str = 'softclip_evidence_count'
    SOFTCLIP_MAPPED: str = 'softclip_mapped'
    SOFTCLIP_MAPQ_REMOTE_TOTAL: str = 'softclip_mapq_remote_total'
    SOFTCLIP_MAPQ_REMOTE_MAX: str = 'softclip_mapq_remote_max'
    SOFTCLIP_LENGTH_REMOTE_TOTAL: str = 'softclip_length_remote_total'
    SOFTCLIP_LENGTH_REMOTE_MAX: str = 'softclip_length_remote_max'


class COLUMNS(SvasmNamespace):
    """
    column names for the tab-delimited call output

    Attributes:
        call_id: deterministic identifier built from the call locus
        reference_index: reference sequence index of the (first) breakend
        reference_name: reference sequence name of the (first) breakend
        direction: direction of the (first) breakend
        start: start of the (first) breakend interval
        end: end of the (first) breakend interval
        untemplated_seq: inserted sequence between the breakends, if known
        log_likelihood_ratio: combined log-likelihood ratio of all supporting evidence
        quality: phred-scaled quality derived from the log-likelihood ratio
        somatic_pvalue: p-value of the tumour vs normal support
        somatic: the call passed the somatic p-value threshold
    """

    call_id: str = 'call_id'
    reference_index: str = 'reference_index'
    reference_name: str = 'reference_name'
    direction: str = 'direction'
    start: str = 'start'
    end: str = 'end'
    reference_index2: str = 'reference_index2'
    reference_name2: str = 'reference_name2'
    direction2: str = 'direction2'
    start2: str = 'start2'
    end2: str = 'end2'
    untemplated_seq: str = 'untemplated_seq'
    log_likelihood_ratio: str = 'log_likelihood_ratio'
    quality: str = 'quality'
    assembly_llr: str = 'assembly_llr'
    softclip_llr: str = 'softclip_llr'
    readpair_llr: str = 'readpair_llr'
    reference_read_count: str = 'reference_read_count'
    reference_spanning_pair_count: str = 'reference_spanning_pair_count'
    somatic_pvalue: str = 'somatic_pvalue'
    somatic: str = 'somatic'
    filters: str = 'filters'
    evidence_ids: str = 'evidence_ids'


def sort_columns(input_columns):
    order = {}
    for i, col in enumerate(COLUMNS.values()):
        order[col] = i
    temp = sorted([c for c in input_columns if c in order], key=lambda x: order[x])
    temp = temp + sorted([c for c in input_columns if c not in order])
    return temp


class CIGAR(SvasmNamespace):
    """
    Enum-like. For readable cigar values

    Note:
        descriptions are taken from the `samfile documentation <https://samtools.github.io/hts-specs/SAMv1.pdf>`_
    """

    M = 0
    I = 1
    D = 2
    N = 3
    S = 4
    H = 5
    P = 6
    X = 8
    EQ = 7


BASE_ENCODING: Dict[str, int] = {'A': 0, 'C': 1, 'G': 2, 'T': 3}
"""2-bit encoding of the unambiguous DNA bases"""

BASES: str = 'ACGT'

MAX_PHRED: int = 93
"""largest quality which can be written in phred+33"""

ASSEMBLY_PROGRAM_NAME: str = PROGNAME


def reverse_complement(s: str) -> str:
    """
    wrapper for the Bio.Seq reverse_complement method

    Args:
        s: the input DNA sequence

    Returns:
        str: the reverse complement of the input sequence

    Example:
        >>> reverse_complement('ATCCGGT')
        'ACCGGAT'
    """
    input_string = str(s)
    if not re.match('^[A-Za-z]*$', input_string):
        raise ValueError('unexpected sequence format. cannot reverse complement', input_string)
    return str(Seq(input_string).reverse_complement())
