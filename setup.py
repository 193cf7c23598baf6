import os

from setuptools import find_packages, setup

VERSION = '1.0.0'


def parse_readme():
    try:
        with open(os.path.join(os.path.dirname(__file__), 'README.md')) as fh:
            return fh.read()
    except OSError:
        return ''


# HSTLIB is a dependency for pysam.
# The cram file libraries fail for some OS versions and svasm does not use cram files so we disable these options
os.environ['HTSLIB_CONFIGURE_OPTIONS'] = '--disable-lzma --disable-bz2 --disable-libcurl'


TEST_REQS = [
    'pytest',
    'pytest-cov',
]


INSTALL_REQS = [
    'biopython>=1.78',
    'braceexpand>=0.1.5',
    'networkx>=2.5',
    'numpy>=1.13.1',
    'pandas>=1.1',
    'pysam>=0.15.2',
    'scipy>=1.7',
    'snakemake>=6.0',
]


setup(
    name='svasm',
    version='{}'.format(VERSION),
    packages=find_packages(where='src'),
    package_dir={'': 'src'},
    package_data={'svasm': ['schemas/*.json']},
    description='Positional breakend assembly and structural variant calling',
    long_description=parse_readme(),
    long_description_content_type='text/markdown',
    install_requires=INSTALL_REQS,
    extras_require={
        'test': TEST_REQS,
        'dev': ['black', 'flake8'] + TEST_REQS,
    },
    python_requires='>=3.9',
    entry_points={
        'console_scripts': [
            'svasm = svasm.main:main',
        ]
    },
)
