"""
UNICORT: unified segmentation based correction of R1 maps for RF transmit
field inhomogeneities.

Weiskopf et al. (2011), "Unified segmentation based correction of R1 brain
maps for RF transmit field inhomogeneities (UNICORT)", NeuroImage.

The correction was optimised for 1mm isotropic whole brain data at 3T and may
need other regularisation and smoothness for other field strengths and coils.
For research use only.
"""
import logging
import os

import numpy as np
from scipy import stats

from .dataio import load_data, write_like, add_prefix, get_nifti_basename, uncompressed
from .defaults import get_defaults, get_tpm
from .metadata import make_history, set_metadata
from .segment import build_segment_job, find_bias_field, get_estimator

log = logging.getLogger(__name__)

FINISHED = '_finished_'


def head_mask_threshold(pdw, thr_factor):
    """
    Threshold of the head/neck mask: a multiple of the modal (rounded) intensity
    of the PD-weighted image. Non-finite voxels are ignored, ties resolve to the
    smallest value.

    Parameters:
    pdw (ndarray): PD-weighted image data.
    thr_factor (float): Multiplier.

    Returns:
    float: The threshold.
    """
    vals = np.round(pdw[np.isfinite(pdw)])
    if vals.size == 0:
        raise ValueError('PD-weighted image has no finite voxels')
    return thr_factor*stats.mode(vals, axis=None, keepdims=False).mode


def run_unicort(P_PDw, P_R1, out_dir=None, config=None, estimator=None):
    """Apply UNICORT to an R1 map

    Parameters
    ----------
    P_PDw : str
        Proton density weighted image (small flip angle FLASH), used for masking.

    P_R1 : str
        R1 map from the dual flip angle FLASH experiment.

    out_dir : str, optional
        Output directory. Default is the directory of the R1 map.

    config : dict, optional
        Parameters as returned by get_defaults(). Default is the package defaults.

    estimator : BiasEstimator, optional
        Runs the unified segmentation. Default is the configured backend.

    Returns
    -------
    dict
        R1u: bias corrected R1 map, B1u: B1+ map, R1_masked: masked R1 map,
        bias: bias field
    """
    if config is None:
        config = get_defaults()
    unicort_procpar = config['unicort']
    seg_params = config['segment']

    if out_dir is None:
        out_dir = os.path.dirname(os.path.abspath(P_R1))
    os.makedirs(out_dir, exist_ok=True)

    if estimator is None:
        estimator = get_estimator(seg_params['backend'], seg_params)

    # Head/neck mask
    Y_PDw, _ = load_data(P_PDw)
    thresh = head_mask_threshold(Y_PDw, unicort_procpar['thr'])
    mask = Y_PDw > thresh
    log.info(f"Head mask threshold {thresh:g} ({np.sum(mask)} voxels)")

    # Masked R1 map
    Y_R1, V_R1 = load_data(P_R1)
    Y_R1_mask = np.where(mask, Y_R1, 0)
    # written uncompressed, the segmentation reads it
    P_R1_mask = uncompressed(add_prefix(P_R1, 'h', out_dir=out_dir))
    write_like(Y_R1_mask, V_R1, P_R1_mask, descrip='Masked R1 map')
    set_metadata(P_R1_mask, make_history([P_PDw, P_R1], unicort_procpar,
                                         imtype='Masked R1 map [1000/s]', units='ms-1'))
    log.info(f"Saved {P_R1_mask}")

    # Unified segmentation of the masked map
    job = build_segment_job(P_R1_mask, get_tpm(seg_params), unicort_procpar['reg'],
                            unicort_procpar['FWHM'], seg_params)
    seg_out = estimator.run(job)
    seg_procpar = {'preproc8': job, 'backend': estimator.name}

    P_biasmap = find_bias_field(os.path.dirname(P_R1_mask), os.path.basename(get_nifti_basename(P_R1_mask)))
    set_metadata(P_biasmap, make_history([P_R1_mask], seg_procpar,
                                         imtype='UNICORT bias field', units='a.u.'))

    # B1+ map from the bias field
    Y_biasmap, _ = load_data(P_biasmap)
    Y_B1 = np.where(mask, np.sqrt(Y_biasmap)*100, 0)
    P_B1 = add_prefix(P_R1, 'B1_', out_dir=out_dir)
    write_like(Y_B1, V_R1, P_B1, descrip='UNICORT estimated B1+ map (p.u. nominal fa)')
    set_metadata(P_B1, make_history([P_biasmap], seg_procpar,
                                    imtype='B1+ map', units='p.u. nominal FA'))
    log.info(f"Saved {P_B1}")

    # Corrected R1 map, written by the segmentation
    P_R1_unicort = seg_out['corrected']
    set_metadata(P_R1_unicort, make_history([P_R1_mask], seg_procpar,
                                            imtype='Bias corrected R1 UNICORT map', units='ms-1'))
    log.info(f"Saved {P_R1_unicort}")

    open(os.path.join(out_dir, FINISHED), 'wb').close()

    return {'R1u': P_R1_unicort, 'B1u': P_B1, 'R1_masked': P_R1_mask, 'bias': P_biasmap}
