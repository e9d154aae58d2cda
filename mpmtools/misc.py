import os
import re
from pathlib import Path

NIFTI_EXT = ('.nii.gz', '.nii', '.img', '.hdr')


def mpm_path():
    mpath = Path.home().joinpath('mpmtools_data')
    mpath.mkdir(exist_ok=True)
    return str(mpath)


def split_volume_index(fname):
    """Split the SPM ``path,N`` notation into path and 1-based volume index"""
    m = re.match(r'^(.*),(\d+)$', fname)
    if m:
        return m.group(1), int(m.group(2))
    return fname, None


def get_nifti_basename(fname):
    fname, _ = split_volume_index(fname)
    for ext in NIFTI_EXT:
        if fname.endswith(ext):
            return fname[:-len(ext)]
    return os.path.splitext(fname)[0]


def get_nifti_ext(fname):
    fname, _ = split_volume_index(fname)
    for ext in NIFTI_EXT:
        if fname.endswith(ext):
            return ext
    return os.path.splitext(fname)[1]
