import errno
import logging
import os
from glob import glob
from typing import Dict, Iterable, List, Optional, Union

import pandas as pd
from braceexpand import braceexpand

from .constants import sort_columns

logger = logging.getLogger('svasm')


def bash_expands(*expressions: str) -> List[str]:
    """
    expand a file glob expression, allowing bash-style brackets.

    Returns:
        list: a list of files

    Raises:
        FileNotFoundError: an expression did not match any files

    Example:
        >>> bash_expands('./{test,doc}/*py')
        [...]
    """
    result = []
    for expression in expressions:
        eresult = []
        for name in braceexpand(expression):
            for fname in glob(name):
                eresult.append(fname)
        if not eresult:
            raise FileNotFoundError('The expression does not match any files', expression)
        result.extend(eresult)
    return [os.path.abspath(f) for f in result]


def filepath(path: str) -> str:
    """
    argparse type for an expression which must match exactly one file
    """
    try:
        file_list = bash_expands(path)
    except FileNotFoundError:
        raise TypeError('File does not exist', path)
    if len(file_list) > 1:
        raise TypeError('File pattern match multiple files and expected only one', path)
    return file_list[0]


def log_arguments(args):
    """
    output the arguments to the console

    Args:
        args (Namespace): the namespace to print arguments for
    """
    logger.info('arguments')

    indent = ' '

    for arg, val in sorted(args.__dict__.items()):
        if isinstance(val, list):
            if len(val) <= 1:
                logger.info(f'{indent}{arg} = {val}')
                continue
            logger.info(f'{indent}{arg} = [')
            for v in val:
                logger.info(f'{indent * 2}{repr(v)}')
            logger.info(f'{indent}]')
        elif any([isinstance(val, typ) for typ in [str, int, float, bool, tuple]]) or val is None:
            logger.info(f'{indent}{arg} = {repr(val)}')
        else:
            logger.info(f'{indent}{arg} = {object.__repr__(val)}')


def mkdirp(dirname: str) -> str:
    """
    Make a directory or path of directories. Suppresses the error that is normally raised when the directory already exists
    """
    logger.info(f"creating output directory: '{dirname}'")
    try:
        os.makedirs(dirname)
    except OSError as exc:
        if exc.errno == errno.EEXIST and os.path.isdir(dirname):
            pass
        else:
            raise exc
    return dirname


def output_tabbed_file(rows: Iterable[Union[Dict, object]], filename: str, header: Optional[List[str]] = None):
    """
    write rows (or objects with a flatten method) to a tab-delimited file
    """
    if header is None:
        custom_header = False
        header_cols = set()
    else:
        custom_header = True
        header_cols = set(header)
    records = []
    for row in rows:
        if not isinstance(row, dict):
            row = row.flatten()  # type: ignore
        records.append(row)
        if not custom_header:
            header_cols.update(row.keys())
    columns = sort_columns(header_cols) if not custom_header else header
    logger.info(f'writing: {filename}')
    df = pd.DataFrame.from_records(records, columns=columns)
    df = df.fillna('None')
    df.to_csv(filename, columns=columns, index=False, sep='\t')


def read_tabbed_file(filename: str) -> pd.DataFrame:
    df = pd.read_csv(filename, sep='\t', dtype=str, keep_default_na=False)
    return df
