import os

import ants
import nibabel as nib
import numpy as np

from .metadata import sidecar_name
from .misc import get_nifti_basename, get_nifti_ext, split_volume_index


def add_prefix(fname, prefix, out_dir=None):
    """Prefix the file name, keeping directory and extension

    Parameters
    ----------
    fname : str
        Image file, optionally with a ``,N`` volume index which is dropped.

    prefix : str
        Prefix for the file name.

    out_dir : str, optional
        Directory of the new file. Default is the directory of fname.

    Returns
    -------
    str
        The new file name
    """
    fname, _ = split_volume_index(fname)
    dname, bname = os.path.split(fname)
    if out_dir is not None:
        dname = out_dir
    return os.path.join(dname, prefix + bname)


def load_data(fname):
    """
    Load image data as float64 together with the nibabel image
    """
    fname, idx = split_volume_index(fname)
    nii = nib.load(fname)
    data = nii.get_fdata()
    if idx is not None:
        data = data[..., idx-1]
    return data, nii


def write_like(data, template, fname, descrip=None):
    """Write voxel data as float32 NIfTI using the geometry of a template

    Args:
        data (ndarray): Voxel data.
        template (Nifti1Image): Image providing affine and header.
        fname (str): Output file name.
        descrip (str, optional): Header description. Defaults to None.

    Returns:
        str: fname
    """
    header = template.header.copy()
    header.set_data_dtype(np.float32)
    if descrip is not None:
        header['descrip'] = descrip[:80]
    nii = nib.Nifti1Image(data.astype(np.float32), template.affine, header)
    nii.set_qform(template.affine, code=1)
    nii.set_sform(template.affine, code=1)
    nib.save(nii, fname)
    return fname


def read_ants(fname, index=None):
    """Read an image with ANTs, extracting a frame of a 4D image

    Args:
        fname (str): Image file, may carry a ``,N`` volume index.
        index (int, optional): 1-based frame used when fname has no index. Defaults to None.

    Returns:
        ANTsImage: 3D image
    """
    fname, idx = split_volume_index(fname)
    if idx is None:
        idx = index

    img = ants.image_read(fname)
    if img.dimension == 4:
        if idx is None:
            raise ValueError(f'{fname} is 4D, a volume index is needed')
        img = ants.slice_image(img, axis=3, idx=idx-1)
    return img


def same_grid(img, target):
    return (img.shape == target.shape
            and np.allclose(img.spacing, target.spacing)
            and np.allclose(img.origin, target.origin)
            and np.allclose(img.direction, target.direction))


def reslice_to(img, target, interp='bSpline'):
    """Resample img onto the voxel grid of target, unless it is already there"""
    if same_grid(img, target):
        return img
    return ants.resample_image_to_target(img, target, interp_type=interp)


def uncompressed(fname):
    """Same file name with .nii for a gzipped NIfTI, which SPM can't read"""
    if get_nifti_ext(fname) == '.nii.gz':
        return get_nifti_basename(fname) + '.nii'
    return fname


def remove_files(fnames):
    for fname in fnames:
        fname, _ = split_volume_index(fname)
        for f in [fname, sidecar_name(fname)]:
            if os.path.exists(f):
                os.remove(f)
