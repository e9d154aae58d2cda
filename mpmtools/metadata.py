"""
Provenance records stored in JSON sidecar files next to every image.

A record looks like::

    {"history": {"procstep": {"version": ..., "descrip": ..., "procpar": {...}},
                 "input": [{"filename": ..., "history": ...}, ...],
                 "output": {"imtype": ..., "units": ...}}}

The history of each input is the input's own record, so the chain of
processing steps can be followed back to the acquired data.
"""
import json
import os

import numpy as np

from . import get_version
from .misc import get_nifti_basename, split_volume_index

NO_HISTORY = 'No history available.'


def sidecar_name(fname):
    return get_nifti_basename(fname) + '.json'


def _to_json(x):
    if isinstance(x, np.generic):
        return x.item()
    if isinstance(x, np.ndarray):
        return x.tolist()
    raise TypeError(f'{type(x)} is not JSON serializable')


def get_metadata(fname):
    """Read the sidecar of an image, None if there is none"""
    jfile = sidecar_name(fname)
    if not os.path.exists(jfile):
        return None
    with open(jfile, 'r') as f:
        return json.load(f)


def input_record(fname):
    hdr = get_metadata(fname)
    if hdr and 'history' in hdr:
        history = hdr['history']
    else:
        history = NO_HISTORY
    return {'filename': os.path.abspath(split_volume_index(fname)[0]), 'history': history}


def make_history(inputs, procpar, imtype, units, descrip='map creation'):
    """Build the provenance record of an output image

    Parameters
    ----------
    inputs : list of str
        Files the output was computed from. Their own history is chained in.

    procpar : dict
        Processing parameters.

    imtype : str
        Description of the output.

    units : str
        Units of the output.

    descrip : str
        Processing step description.

    Returns
    -------
    dict
        The record
    """
    if len(inputs) == 0:
        raise ValueError('At least one input is needed to record the history')

    return {'history': {'procstep': {'version': get_version(),
                                     'descrip': descrip,
                                     'procpar': procpar},
                        'input': [input_record(f) for f in inputs],
                        'output': {'imtype': imtype, 'units': units}}}


def set_metadata(fname, record):
    jfile = sidecar_name(fname)
    with open(jfile, 'w') as f:
        json.dump(record, f, indent=4, default=_to_json)
    return jfile
