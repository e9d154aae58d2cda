import copy
import json
import os

from .misc import mpm_path

MPM_DEFAULTS = {
    "unicort":{
        "reg": 1e-3,
        "FWHM": 60,
        "thr": 5
    },
    "segment":{
        "backend": "spm",
        "tpm": None,
        "spm_path": None,
        "matlab_cmd": None,
        "use_mcr": False,
        "ngaus": [2, 2, 2, 3, 4, 2],
        "warp_reg": [0, 0.001, 0.5, 0.05, 0.2],
        "affreg": "mni",
        "samp": 3,
        "write_bias": [True, True],
        "n4_shrink": 4
    },
    "smooth":{
        "fwhm": 6,
        "tpm_thr": 0.05,
        "tc_thr": 0.05,
        "interp": "bSpline",
        "prefix_out": "wa"
    }
}


def _merge(base, new):
    for key, value in new.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def get_defaults(section=None, config_file=None):
    """Get the processing parameters

    Args:
        section (str, optional): Return only this section (unicort, segment, smooth). Defaults to None.
        config_file (str, optional): JSON file with values overriding the defaults. Defaults to None.

    Raises:
        KeyError: Unknown section in either the request or the config file

    Returns:
        dict: Copy of the parameters
    """

    D = copy.deepcopy(MPM_DEFAULTS)

    if config_file:
        with open(config_file, 'r') as f:
            user = json.load(f)

        for key in user.keys():
            if key not in D:
                raise KeyError(f'{key} is not a valid config section. (Valid: {list(D.keys())})')
        _merge(D, user)

    if section is None:
        return D

    if section not in D:
        raise KeyError(f'{section} is not a valid config section. (Valid: {list(D.keys())})')
    return D[section]


def get_tpm(params):
    """Tissue probability map used by the segmentation

    The enhanced TPM is looked for in the SPM installation when its path is
    known, otherwise in the user data directory.
    """
    if params.get('tpm'):
        return params['tpm']
    if params.get('spm_path'):
        return os.path.join(params['spm_path'], 'tpm', 'enhanced_TPM.nii')
    return os.path.join(mpm_path(), 'tpm', 'enhanced_TPM.nii')
