"""
Tissue specific smoothing, aka. weighted averaging, of warped MPMs to limit
partial volume effects (Draganski et al. 2011, NeuroImage 55(4)).

For each map and tissue class the output is

    smooth((map * tc) * (tpm > 0.05)) / smooth(tc), masked by smooth(tc) > 0.05

with tc the modulated warped tissue class and tpm the matching a priori
tissue probability map. One subject is processed at a time, typically 4 maps
(MT, R1, R2*, PD) and 2 tissue classes (GM, WM).
"""
import logging

import ants
import numpy as np

from .dataio import add_prefix, read_ants, reslice_to, remove_files
from .defaults import get_defaults
from .metadata import make_history, set_metadata

log = logging.getLogger(__name__)


def _as_list(x):
    if isinstance(x, str):
        return [x]
    return list(x)


def _smooth(fname, out_fname, fwhm):
    img = ants.smooth_image(read_ants(fname), fwhm, sigma_in_physical_coordinates=True, FWHM=True)
    ants.image_write(img, out_fname)
    return out_fname


def _write(arr, like, fname):
    ants.image_write(like.new_image_like(arr.astype(np.float32)), fname)
    return fname


def mpm_smooth(fn_wMPM, fn_mwTC, fn_TPM, fwhm=None, l_TC=None, config=None):
    """Tissue weighted smoothing of warped MPMs

    Parameters
    ----------
    fn_wMPM : list of str
        Warped maps, i.e. the w*MT/R1/R2s/PD files.

    fn_mwTC : list of str
        Modulated warped tissue classes, i.e. the mwc1/mwc2 files.

    fn_TPM : list of str
        A priori tissue probability maps matching fn_mwTC. Either 3D files,
        ``path,N`` volumes, or 4D files from which volume l_TC[i] is taken.

    fwhm : float, optional
        Smoothing kernel width in mm. Default from the 'smooth' config section (6).

    l_TC : list of int, optional
        Tissue class indexes, used to number the outputs. Default is 1..nTC.

    config : dict, optional
        Parameters as returned by get_defaults().

    Returns
    -------
    list
        One list per map with the smoothed tissue specific maps, one per class

    Raises
    ------
    ValueError
        Number of tissue classes and tissue probability maps differ.
    """
    fn_wMPM = _as_list(fn_wMPM)
    fn_mwTC = _as_list(fn_mwTC)
    fn_TPM = _as_list(fn_TPM)

    nTC = len(fn_mwTC)
    if nTC != len(fn_TPM):
        raise ValueError(f'Mismatched number of tissue classes ({nTC} tissue classes, {len(fn_TPM)} TPMs)')

    params = config['smooth'] if config else get_defaults('smooth')
    if fwhm is None:
        fwhm = params['fwhm']

    if l_TC is None or len(l_TC) != nTC:
        if l_TC is not None:
            log.warning(f"Ignoring tissue class list {l_TC}, expected {nTC} entries")
        l_TC = list(range(1, nTC+1))

    procpar = {'fwhm': fwhm, 'tpm_thr': params['tpm_thr'], 'tc_thr': params['tc_thr']}

    # Smoothed tissue classes -> m-images
    m = [add_prefix(f, 's') for f in fn_mwTC]
    p, n = [], []
    fn_out = []

    try:
        for jj in range(nTC):
            _smooth(fn_mwTC[jj], m[jj], fwhm)

        for fn_map in fn_wMPM:
            log.info(f"Tissue weighted smoothing of {fn_map}")
            mpm = read_ants(fn_map)

            q = []
            for jj in range(nTC):
                # Map weighted with its own tissue class, and a priori > thr -> p-image
                tc = reslice_to(read_ants(fn_mwTC[jj]), mpm, params['interp'])
                tpm = reslice_to(read_ants(fn_TPM[jj], index=l_TC[jj]), mpm, params['interp'])
                p_jj = add_prefix(fn_map, f'p{l_TC[jj]}_')
                p.append(p_jj)
                _write((mpm.numpy()*tc.numpy()) * (tpm.numpy() > params['tpm_thr']), mpm, p_jj)

                # Smoothed weighted map -> n-image
                n_jj = add_prefix(p_jj, 's')
                n.append(n_jj)
                _smooth(p_jj, n_jj, fwhm)

                # Signal n/m, masked by the smoothed tissue class
                n_img = read_ants(n_jj)
                m_img = reslice_to(read_ants(m[jj]), n_img, params['interp'])
                n_arr, m_arr = n_img.numpy(), m_img.numpy()
                with np.errstate(divide='ignore', invalid='ignore'):
                    q_arr = np.where(m_arr > params['tc_thr'], n_arr/m_arr, 0)

                q_jj = add_prefix(p_jj, params['prefix_out'])
                _write(q_arr, n_img, q_jj)
                set_metadata(q_jj, make_history([fn_map, fn_mwTC[jj], fn_TPM[jj]],
                                                {**procpar, 'tissue_class': l_TC[jj]},
                                                imtype=f'Tissue weighted smoothed map (class {l_TC[jj]})',
                                                units='same as input map', descrip='tissue weighted smoothing'))
                log.info(f"Saved {q_jj}")
                q.append(q_jj)

            fn_out.append(q)

    finally:
        remove_files(p + m + n)

    return fn_out
