import os

import nibabel as nib
import numpy as np

from mpmtools.dataio import get_nifti_basename
from mpmtools.segment import BiasEstimator


def write_nii(fname, data, affine=None):
    if affine is None:
        affine = np.eye(4)
    nib.save(nib.Nifti1Image(np.asarray(data, dtype=np.float32), affine), str(fname))
    return str(fname)


def make_bias(shape):
    """Smooth positive field varying from 0.81 to 1.21 along the first axis"""
    ramp = np.linspace(0.81, 1.21, shape[0])
    return np.broadcast_to(ramp[:, None, None], shape).astype(np.float32)


class FakeEstimator(BiasEstimator):
    """Writes a known bias field the way the segmentation toolkit does"""

    name = 'fake'

    def __init__(self, ext='.nii'):
        super().__init__({})
        self.ext = ext
        self.jobs = []

    def run(self, job):
        self.jobs.append(job)
        fname = job['channel']['vols'][0]
        nii = nib.load(fname)
        bias = make_bias(nii.shape)

        dname = os.path.dirname(fname)
        bname = os.path.basename(get_nifti_basename(fname))
        nib.save(nib.Nifti1Image(bias, nii.affine), os.path.join(dname, f'BiasField_{bname}{self.ext}'))
        nib.save(nib.Nifti1Image(bias*nii.get_fdata(dtype=np.float32), nii.affine),
                 os.path.join(dname, f'm{os.path.basename(fname)}'))

        return self._outputs(fname)
