import json
import logging
import os

import bids

from . import __version__
from .plot import plot_b1_map
from .stats import write_b1_stats
from .unicort import run_unicort

log = logging.getLogger(__name__)

TOOL = 'mpmtools'
NIFTI_EXTENSIONS = ['.nii', '.nii.gz']

### Helper functions ###

def _check_paths(fname):
    dir = os.path.dirname(fname)
    if not os.path.exists(dir):
        os.makedirs(dir)

    return fname

def _deriv_dir(root, sub, ses=None):
    parts = [root, 'derivatives', TOOL, f'sub-{sub}']
    if ses:
        parts.append(f'ses-{ses}')
    return os.path.join(*parts)

def _deriv_fname(root, sub, ses, desc, extension):
    name = f'sub-{sub}'
    if ses:
        name += f'_ses-{ses}'
    name += f'_desc-{desc}_B1map{extension}'
    return _check_paths(os.path.join(_deriv_dir(root, sub, ses), name))

def _get_one(layout, suffix, **filters):
    files = sorted(layout.get(suffix=suffix, extension=NIFTI_EXTENSIONS, return_type='filename', **filters))
    if len(files) == 0:
        raise FileNotFoundError(f'No {suffix} image found for {filters}')
    if len(files) > 1:
        log.warning(f'Found {len(files)} {suffix} images for {filters}, using {files[0]}')
    return files[0]


### Tools to use ###

def setup_derivatives(projdir):
    """
    Set up the derivatives folder of a BIDS dataset.

    Args:
        projdir (str): The path to the BIDS dataset.

    Returns:
        str: The derivatives folder of this package
    """

    deriv = os.path.join(projdir, 'derivatives', TOOL)
    os.makedirs(deriv, exist_ok=True)

    fname = os.path.join(deriv, 'dataset_description.json')
    if not os.path.exists(fname):
        with open(fname, 'w') as f:
            json.dump({"Name": "mpmtools derivatives dataset", "BIDSVersion": "1.8.0",
                       "DatasetType": "derivative",
                       "GeneratedBy": [{"Name": TOOL, "Version": __version__}]}, f, indent=4)

    return deriv


def load_layout(bids_dir):
    return bids.BIDSLayout(root=bids_dir, validate=False)


def unicort_process_subject(layout, sub, ses=None, config=None, estimator=None, qc=False):
    """
    Run UNICORT for one subject (and session) of a BIDS dataset.

    The PDw image and the R1map of the subject are used. Outputs go to
    derivatives/mpmtools/sub-<sub>[/ses-<ses>], together with a csv of B1+
    map statistics and optionally a QC figure.

    Args:
        layout (BIDSLayout): The BIDS dataset.
        sub (str): The subject ID.
        ses (str, optional): The session ID.
        config (dict, optional): Parameters as returned by get_defaults().
        estimator (BiasEstimator, optional): Bias field estimator.
        qc (bool, optional): Save a png of the B1+ map. Default is False.

    Returns:
        dict: Output file names
    """
    filters = {'subject': sub}
    if ses:
        filters['session'] = ses

    P_PDw = _get_one(layout, 'PDw', **filters)
    P_R1 = _get_one(layout, 'R1map', **filters)
    log.info(f'Starting UNICORT for sub-{sub}' + (f' ses-{ses}' if ses else ''))

    setup_derivatives(layout.root)
    out_dir = _deriv_dir(layout.root, sub, ses)
    out = run_unicort(P_PDw, P_R1, out_dir=out_dir, config=config, estimator=estimator)

    out['stats'] = write_b1_stats(out['B1u'], _deriv_fname(layout.root, sub, ses, 'stats', '.csv'))
    log.info(f"Wrote B1+ stats to {out['stats']}")

    if qc:
        out['qc'] = _deriv_fname(layout.root, sub, ses, 'qc', '.png')
        plot_b1_map(out['B1u'], out['qc'])

    return out


def unicort_process_dataset(bids_dir, subjects=None, config=None, estimator=None, qc=False):
    """Run UNICORT for all subjects and sessions of a dataset"""
    layout = load_layout(bids_dir)
    if not subjects:
        subjects = layout.get_subjects()

    outputs = {}
    for sub in subjects:
        sessions = layout.get_sessions(subject=sub) or [None]
        for ses in sessions:
            outputs[(sub, ses)] = unicort_process_subject(layout, sub, ses, config=config,
                                                          estimator=estimator, qc=qc)
    return outputs
