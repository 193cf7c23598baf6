#!python
import argparse
import logging
import os
import platform
import sys
import time
from typing import List, Optional

from . import __version__
from . import config as _config
from . import pipeline as _pipeline
from . import util as _util
from .constants import EXIT_ERROR, EXIT_OK, PROGNAME
from .evidence import EvidenceSource
from .fastq import RealignedRecords, write_realignment_fastq
from .sources import BamEvidenceSource, BamReferenceCounter, SequenceDictionary
from .util import filepath

SUBCOMMANDS = ['assemble', 'call']


def create_parser(argv):
    parser = argparse.ArgumentParser(prog=PROGNAME, formatter_class=_config.CustomHelpFormatter)
    parser.add_argument(
        '-v',
        '--version',
        action='version',
        version='%(prog)s version ' + __version__,
        help='Outputs the version number',
    )
    subp = parser.add_subparsers(
        dest='command', help='specifies which step/stage in the pipeline or which subprogram to use'
    )
    subp.required = True
    for command in SUBCOMMANDS:
        subparser = subp.add_parser(command, formatter_class=_config.CustomHelpFormatter, add_help=False)
        required = subparser.add_argument_group('required arguments')
        optional = subparser.add_argument_group('optional arguments')
        optional.add_argument('-h', '--help', action='help', help='show this help message and exit')
        optional.add_argument(
            '-v',
            '--version',
            action='version',
            version='%(prog)s version ' + __version__,
            help='Outputs the version number',
        )
        optional.add_argument('--log', help='redirect stdout to a log file', default=None)
        optional.add_argument(
            '--log_level',
            help='level of logging to output',
            choices=['INFO', 'DEBUG'],
            default='INFO',
        )
        optional.add_argument('--config', '-c', help='path to the JSON config file', type=filepath, default=None)
        optional.add_argument(
            '--normal', nargs='+', default=[], help='bam file(s) for the normal library', metavar='FILEPATH'
        )
        optional.add_argument(
            '--tumour', nargs='+', default=[], help='bam file(s) for the tumour library', metavar='FILEPATH'
        )
        required.add_argument(
            '-o',
            '--output',
            required=True,
            help='path to the output file (FASTQ for assemble, tab-delimited for call)',
            metavar='FILEPATH',
        )
        if command == 'call':
            optional.add_argument(
                '--realigned',
                type=filepath,
                default=None,
                help='alignments of the breakend sequences written by assemble, used to resolve breakends to breakpoints',
            )
    return parser, parser.parse_args(argv)


def build_sources(args, config):
    sources = []
    for tumour, expressions in [(False, args.normal), (True, args.tumour)]:
        for index, filename in enumerate(_util.bash_expands(*expressions) if expressions else []):
            name = '{}{}'.format('tumour' if tumour else 'normal', index)
            sources.append(
                BamEvidenceSource(
                    filename,
                    EvidenceSource(name, tumour),
                    min_mapping_quality=config['evidence.min_mapping_quality'],
                    min_clip_length=config['evidence.min_clip_length'],
                    max_fragment_size=config['evidence.max_fragment_size'],
                )
            )
    return sources


def main(argv: Optional[List[str]] = None):
    """
    sets up the parser and checks the validity of command line args
    then runs the requested subcommand

    Args:
        argv: List of arguments, defaults to command line arguments
    """
    if argv is None:  # need to do at run time or patching will not behave as expected
        argv = sys.argv[1:]
    start_time = int(time.time())
    parser, args = create_parser(argv)

    log_conf = {
        'format': '{asctime} [{levelname}] {message}',
        'style': '{',
        'level': args.log_level,
    }

    original_logging_handlers = logging.root.handlers[:]
    for handler in logging.root.handlers:
        logging.root.removeHandler(handler)
    if args.log:  # redirect stdout AND stderr to a log file
        log_conf['filename'] = args.log
    logging.basicConfig(**log_conf)

    _util.logger.info(f'{PROGNAME}: {__version__}')
    _util.logger.info(f'hostname: {platform.node()}')
    _util.log_arguments(args)

    try:
        config = _config.load_config(args.config)
        sources = build_sources(args, config)
        if not sources:
            parser.error('at least one --normal or --tumour bam file is required')
        reference = SequenceDictionary.from_bam(sources[0].filename)
        for source in sources:
            source.reference = reference
        if os.path.dirname(args.output):
            _util.mkdirp(os.path.dirname(args.output))

        if args.command == 'assemble':
            results = _pipeline.run(sources, reference, config)
            evidence = []
            for result in results:
                evidence.extend(result.soft_clips)
                evidence.extend(result.assemblies)
            count = write_realignment_fastq(evidence, args.output, config['assembly.fallback_base_quality'])
            _util.logger.info(f'wrote {count} breakend sequences')
        else:
            counter = BamReferenceCounter(
                [s.filename for s in sources if not s.source.tumour],
                [s.filename for s in sources if s.source.tumour],
                max_fragment_size=config['evidence.max_fragment_size'],
            )
            realigned = RealignedRecords(args.realigned) if args.realigned else None
            results = _pipeline.run(sources, reference, config, reference_counter=counter, realigned=realigned)
            calls = list(_pipeline.ordered_calls(results, margin=config['evidence.max_fragment_size']))
            _util.output_tabbed_file([c.flatten(reference) for c in calls], args.output)
            _util.logger.info(f'wrote {len(calls)} calls')

        duration = int(time.time()) - start_time
        hours = duration - duration % 3600
        minutes = duration - hours - (duration - hours) % 60
        seconds = duration - hours - minutes
        _util.logger.info(
            'run time (hh/mm/ss): {}:{:02d}:{:02d}'.format(hours // 3600, minutes // 60, seconds)
        )
        _util.logger.info(f'run time (s): {duration}')
    except Exception as err:
        _util.logger.error(f'{args.command} failed: {err}')
        return EXIT_ERROR
    finally:
        try:
            for handler in logging.root.handlers:
                logging.root.removeHandler(handler)
            for handler in original_logging_handlers:
                logging.root.addHandler(handler)
        except Exception as err:
            print(err)
    return EXIT_OK


if __name__ == '__main__':
    sys.exit(main())
