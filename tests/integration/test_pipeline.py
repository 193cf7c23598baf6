import os

import pytest
from svasm.breakpoint import BreakendSummary
from svasm.call import StructuralVariantCall
from svasm.constants import CIGAR, DIRECTION, EXIT_ERROR, EXIT_OK
from svasm.error import InvariantViolationError
from svasm.main import main
from svasm.pipeline import PartitionResult, iter_results, ordered_calls, run, run_partition
from svasm.schemas import DEFAULTS
from svasm.sources import ListEvidenceSource, Partition, SequenceDictionary
from svasm.util import read_tabbed_file

from ..util import TUMOUR, long_running_test, mock_header, mock_read, random_sequence, read_pair, soft_clip, write_bam

# sam flags
PAIRED = 1
MATE_UNMAPPED = 8
REVERSE = 16
READ1 = 64


def config(**kwargs):
    result = dict(DEFAULTS)
    for key, value in kwargs.items():
        result[key.replace('__', '.')] = value
    return result


def breakend_evidence(reference_index, count=3, prefix='sc'):
    """
    soft clips sharing 30 anchored bases with a breakend at position 200
    """
    seq = random_sequence(100, seed=reference_index)
    return [
        soft_clip('{}{}-{}'.format(prefix, reference_index, i), 171, seq, 30, reference_index=reference_index, source=TUMOUR)
        for i in range(count)
    ]


def stub_call(call_id, reference_index, start):
    locus = BreakendSummary(reference_index, DIRECTION.FWD, start)
    return StructuralVariantCall(call_id, locus, locus, None, {})


class TestRunPartition:
    def test_two_reads_sharing_anchor(self):
        seq = random_sequence(101, seed=1)
        source = ListEvidenceSource([soft_clip('r1', 1, seq[:100], 1), soft_clip('r2', 1, seq, 1)])
        reference = SequenceDictionary([('chr1', 1000)])
        result = run_partition(Partition(0, 1, 1000), [source], reference, config(assembly__kmer_size=3))
        assert result.evidence_count == 2
        assert len(result.assemblies) == 1
        assert result.assemblies[0].sequence == seq
        assert result.assemblies[0].evidence_ids == ['r1', 'r2']
        assert result.assemblies[0].breakend == BreakendSummary(0, DIRECTION.FWD, 1)
        assert len(result.calls) == 1

    def test_lone_one_end_anchored_read(self):
        source = ListEvidenceSource([read_pair('rp1', 100, 400, sequence=random_sequence(50, 4), start_position=200)])
        reference = SequenceDictionary([('chr1', 1000)])
        result = run_partition(Partition(0, 1, 1000), [source], reference, config())
        assert result.assemblies == []
        assert len(result.calls) == 1
        assert result.calls[0].attributes['assembly_evidence_count'] == [0]

    def test_assembly_joins_call(self):
        source = ListEvidenceSource(breakend_evidence(0))
        reference = SequenceDictionary([('chr1', 1000)])
        result = run_partition(Partition(0, 1, 1000), [source], reference, config())
        assert len(result.assemblies) == 1
        assert result.assemblies[0].breakend == BreakendSummary(0, DIRECTION.FWD, 200)
        assert len(result.calls) == 1
        call = result.calls[0]
        assert call.call_id == 'callchr1:200f'
        assert call.attributes['assembly_evidence_count'] == [1]
        assert call.attributes['softclip_evidence_count'] == [0, 3]
        assert call.reference_read_count == [0, 0]
        assert [e.evidence_id for e in result.soft_clips] == ['sc0-0', 'sc0-1', 'sc0-2']


class TestIterResults:
    def test_inline(self):
        assert list(iter_results(range(5), lambda x: x * 2)) == [0, 2, 4, 6, 8]

    def test_threads_keep_order(self):
        assert list(iter_results(range(20), lambda x: x * 2, threads=4, max_pending=2, executor='thread')) == [
            x * 2 for x in range(20)
        ]

    def test_error_propagates(self):
        def func(x):
            if x == 3:
                raise ValueError('bad partition', x)
            return x

        with pytest.raises(ValueError):
            list(iter_results(range(10), func, threads=2, max_pending=2, executor='thread'))


class TestOrderedCalls:
    def test_calls_held_for_next_partition(self):
        results = [
            PartitionResult(Partition(0, 1, 100), 0, [], [stub_call('a', 0, 50), stub_call('c', 0, 150)]),
            PartitionResult(Partition(0, 101, 200), 0, [], [stub_call('b', 0, 120)]),
            PartitionResult(Partition(1, 1, 100), 0, [], [stub_call('d', 1, 10)]),
        ]
        assert [c.call_id for c in ordered_calls(results)] == ['a', 'b', 'c', 'd']

    def test_out_of_order(self):
        results = [
            PartitionResult(Partition(0, 1, 100), 0, [], [stub_call('a', 0, 50)]),
            PartitionResult(Partition(0, 101, 200), 0, [], [stub_call('b', 0, 120)]),
            PartitionResult(Partition(0, 201, 300), 0, [], [stub_call('c', 0, 10)]),
        ]
        with pytest.raises(InvariantViolationError):
            list(ordered_calls(results))

    def test_reaches_back_several_partitions(self):
        results = [
            PartitionResult(Partition(0, 1, 150), 0, [], []),
            PartitionResult(Partition(0, 151, 300), 0, [], []),
            PartitionResult(Partition(0, 301, 450), 0, [], [stub_call('a', 0, 401)]),
            PartitionResult(Partition(0, 451, 600), 0, [], []),
            PartitionResult(Partition(0, 601, 750), 0, [], [stub_call('c', 0, 701)]),
            PartitionResult(Partition(0, 751, 900), 0, [], []),
            PartitionResult(Partition(0, 901, 1000), 0, [], [stub_call('b', 0, 402)]),
        ]
        with pytest.raises(InvariantViolationError):
            list(ordered_calls(results))
        assert [c.call_id for c in ordered_calls(results, margin=600)] == ['a', 'b', 'c']


class TestRun:
    def setup_method(self):
        self.reference = SequenceDictionary([('chr{}'.format(i + 1), 1000) for i in range(4)])
        evidence = []
        for reference_index in [3, 1, 0, 2]:
            evidence.extend(breakend_evidence(reference_index))
        self.sources = [ListEvidenceSource(evidence)]

    def test_genomic_order(self):
        calls = list(ordered_calls(run(self.sources, self.reference, config())))
        assert [c.locus.reference_index for c in calls] == [0, 1, 2, 3]

    def test_genomic_order_threads(self):
        cfg = config(pipeline__threads=2, pipeline__executor='thread', pipeline__max_pending=1)
        calls = list(ordered_calls(run(self.sources, self.reference, cfg)))
        assert [c.locus.reference_index for c in calls] == [0, 1, 2, 3]

    @long_running_test
    def test_genomic_order_processes(self):
        cfg = config(pipeline__threads=2, pipeline__executor='process')
        calls = list(ordered_calls(run(self.sources, self.reference, cfg)))
        assert [c.locus.reference_index for c in calls] == [0, 1, 2, 3]

    def test_small_partitions(self):
        cfg = config(pipeline__partition_size=150)
        results = list(run(self.sources, self.reference, cfg))
        assert len(results) == 4 * 7
        calls = list(ordered_calls(results))
        assert [(c.locus.reference_index, c.locus.start) for c in calls] == [(i, 200) for i in range(4)]

    def test_deterministic(self):
        first = [c.flatten(self.reference) for c in ordered_calls(run(self.sources, self.reference, config()))]
        second = [c.flatten(self.reference) for c in ordered_calls(run(self.sources, self.reference, config()))]
        assert first == second


class TestMain:
    def setup_method(self):
        self.header = mock_header(1000)
        seq = random_sequence(100, seed=9)
        self.reads = [
            mock_read(self.header, 'r{}'.format(i), seq, reference_start=170, cigar=[(CIGAR.M, 30), (CIGAR.S, 70)])
            for i in range(4)
        ]

    def test_call(self, tmp_path):
        bam = write_bam(str(tmp_path / 'tumour.bam'), self.header, self.reads)
        output = str(tmp_path / 'out' / 'calls.tab')
        assert main(['call', '--tumour', bam, '-o', output]) == EXIT_OK
        df = read_tabbed_file(output)
        assert df.shape[0] == 1
        assert df['call_id'][0] == 'callchr1:200f'
        assert df['reference_name'][0] == 'chr1'
        assert df['softclip_evidence_count'][0] == '0;4'

    def test_call_realigned(self, tmp_path):
        bam = write_bam(str(tmp_path / 'tumour.bam'), self.header, self.reads)
        clipped = self.reads[0].query_sequence[30:]
        alignments = [
            mock_read(
                self.header,
                '0#200#tumour0:fr{}/1'.format(i),
                clipped,
                reference_start=599,
                cigar=[(CIGAR.M, 70)],
                mapping_quality=40,
            )
            for i in range(4)
        ]
        realigned = write_bam(str(tmp_path / 'realigned.bam'), self.header, alignments)
        output = str(tmp_path / 'calls.tab')
        assert main(['call', '--tumour', bam, '--realigned', realigned, '-o', output]) == EXIT_OK
        df = read_tabbed_file(output)
        assert df.shape[0] == 1
        assert df['call_id'][0] == 'callchr1:200f'
        assert df['start'][0] == '200'
        assert df['direction2'][0] == 'b'
        assert df['start2'][0] == '600'
        assert df['untemplated_seq'][0] == ''
        assert df['softclip_mapped'][0] == '0;4'

    def test_reads_split_by_partition_boundary(self, tmp_path):
        seq = random_sequence(105, seed=11)
        reads = [
            mock_read(self.header, 'r1', seq[:100], reference_start=140, cigar=[(CIGAR.M, 30), (CIGAR.S, 70)]),
            mock_read(self.header, 'r2', seq[5:], reference_start=145, cigar=[(CIGAR.M, 25), (CIGAR.S, 75)]),
        ]
        bam = write_bam(str(tmp_path / 'tumour.bam'), self.header, reads)
        config_file = tmp_path / 'config.json'
        config_file.write_text('{"pipeline.partition_size": 142}')
        output = str(tmp_path / 'calls.tab')
        assert main(['call', '--tumour', bam, '-c', str(config_file), '-o', output]) == EXIT_OK
        df = read_tabbed_file(output)
        assert list(df['call_id']) == ['callchr1:170f']

    def test_call_reaching_back_several_partitions(self, tmp_path):
        seq = random_sequence(100, seed=9)
        reads = [
            mock_read(self.header, 'r{}'.format(i), seq, reference_start=671, cigar=[(CIGAR.M, 30), (CIGAR.S, 70)])
            for i in range(4)
        ]
        reads.append(
            mock_read(
                self.header,
                'oea',
                random_sequence(100, seed=3),
                reference_start=900,
                cigar=[(CIGAR.M, 100)],
                flag=PAIRED | REVERSE | MATE_UNMAPPED | READ1,
                next_reference_id=0,
                next_reference_start=900,
            )
        )
        bam = write_bam(str(tmp_path / 'tumour.bam'), self.header, reads)
        config_file = tmp_path / 'config.json'
        config_file.write_text('{"pipeline.partition_size": 150}')
        output = str(tmp_path / 'calls.tab')
        assert main(['call', '--tumour', bam, '-c', str(config_file), '-o', output]) == EXIT_OK
        df = read_tabbed_file(output)
        assert list(df['call_id']) == ['callchr1:401-900b', 'callchr1:701f']

    def test_assemble(self, tmp_path):
        bam = write_bam(str(tmp_path / 'tumour.bam'), self.header, self.reads)
        output = str(tmp_path / 'assemblies.fq')
        assert main(['assemble', '--normal', bam, '-o', output]) == EXIT_OK
        with open(output) as fh:
            lines = fh.read().splitlines()
        assert len(lines) == 20
        assert lines[::4] == ['@0#200#normal0:fr{}/1'.format(i) for i in range(4)] + ['@0#200#asm0-171-0']
        assert all(len(line) == 70 for line in lines[1::4])

    def test_config_file(self, tmp_path):
        bam = write_bam(str(tmp_path / 'tumour.bam'), self.header, self.reads)
        config_file = tmp_path / 'config.json'
        config_file.write_text('{"assembly.min_support": 10}')
        output = str(tmp_path / 'assemblies.fq')
        assert main(['assemble', '--normal', bam, '-c', str(config_file), '-o', output]) == EXIT_OK
        with open(output) as fh:
            lines = fh.read().splitlines()
        assert len(lines) == 16
        assert not [line for line in lines[::4] if 'asm' in line]

    def test_missing_bam(self, tmp_path):
        output = str(tmp_path / 'calls.tab')
        assert main(['call', '--tumour', str(tmp_path / 'missing.bam'), '-o', output]) == EXIT_ERROR
        assert not os.path.exists(output)

    def test_bad_config(self, tmp_path):
        bam = write_bam(str(tmp_path / 'tumour.bam'), self.header, self.reads)
        config_file = tmp_path / 'config.json'
        config_file.write_text('{"assembly.kmer_size": "big"}')
        output = str(tmp_path / 'calls.tab')
        assert main(['call', '--tumour', bam, '-c', str(config_file), '-o', output]) == EXIT_ERROR
