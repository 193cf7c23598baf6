import argparse
import json
from typing import Dict, Optional

from snakemake.exceptions import WorkflowError
from snakemake.utils import validate as snakemake_validate

from .schemas import DEFAULTS, SCHEMA_FILE, get_by_prefix


class CustomHelpFormatter(argparse.ArgumentDefaultsHelpFormatter):
    """
    subclass the default help formatter to stop default printing for required arguments
    """

    def _get_help_string(self, action):
        if action.required:
            return action.help
        return super(CustomHelpFormatter, self)._get_help_string(action)

    def add_arguments(self, actions):
        # sort the arguments alphanumerically so they print in the help that way
        actions = sorted(actions, key=lambda x: getattr(x, 'option_strings'))
        super(CustomHelpFormatter, self).add_arguments(actions)


def validate_config(config: Dict) -> Dict:
    """
    Check that the config conforms to the expected schema and fill in the defaults for any missing properties

    Raises:
        WorkflowError: the config is not valid
    """
    try:
        snakemake_validate(config, SCHEMA_FILE, set_default=True)
    except Exception as err:
        short_msg = '. '.join(
            [line for line in str(err).split('\n') if line.strip()][:3]
        )  # these can get super long
        raise WorkflowError(short_msg)
    return config


def load_config(filename: Optional[str] = None) -> Dict:
    """
    read and validate a JSON config file. The defaults are returned when no file is given
    """
    if filename is None:
        return dict(DEFAULTS)
    with open(filename, 'r') as fh:
        config = json.load(fh)
    return validate_config(config)


def assembly_options(config: Dict) -> Dict:
    """
    the keyword arguments for assembling a window from the assembly section of the config
    """
    section = get_by_prefix(config, 'assembly.')
    return {
        'min_support': section['min_support'],
        'min_weight': section['min_weight'],
        'write_filtered': section['write_filtered'],
        'max_window_nodes': section['max_window_nodes'],
        'max_subgraph_fragment_width': section['max_subgraph_fragment_width'],
        'fallback_base_quality': section['fallback_base_quality'],
    }
