"""
External unified segmentation / bias field estimation.

The bias field is never estimated here. The estimators hand the image to an
external toolkit and collect what it writes to disk:

- BiasField_<name>.nii : multiplicative field, corrected = field * input
- m<name>.nii          : the bias corrected image
"""
import logging
import os

import ants
import numpy as np

from .dataio import get_nifti_basename

log = logging.getLogger(__name__)


def build_segment_job(fname, tpm, reg, fwhm, params):
    """Parameters of the unified segmentation of one image

    Parameters
    ----------
    fname : str
        Image to segment (the masked R1 map).

    tpm : str
        Tissue probability map with one volume per tissue class.

    reg : float
        Bias regularisation.

    fwhm : float
        Bias field smoothness (FWHM in mm).

    params : dict
        The 'segment' section of the defaults.

    Returns
    -------
    dict
        The job, also recorded in the provenance of the outputs

    Notes
    -----
    nipype has no MRF input, the MRF cleanup is left at the toolkit default and
    is not part of the job.
    """
    tissues = []
    for i, ngaus in enumerate(params['ngaus']):
        tissues.append({'tpm': [tpm, i+1],
                        'ngaus': ngaus,
                        'native': [False, False],
                        'warped': [False, False]})

    return {'channel': {'vols': [fname],
                        'biasreg': reg,
                        'biasfwhm': fwhm,
                        'write': list(params['write_bias'])},
            'tissue': tissues,
            'warp': {'reg': list(params['warp_reg']),
                     'affreg': params['affreg'],
                     'samp': params['samp'],
                     'write': [False, False]}}


def find_bias_field(dirname, basename):
    """Bias field written by the segmentation

    The toolkit writes either NIfTI-1 single file or analyze pairs, so both
    extensions are tried.
    """
    for ext in ['.nii', '.img']:
        fname = os.path.join(dirname, f'BiasField_{basename}{ext}')
        if os.path.exists(fname):
            return fname
    raise FileNotFoundError(f"Can't find bias field for {basename} in {dirname}")


class BiasEstimator():

    name = None

    def __init__(self, params):
        self.params = params

    def run(self, job):
        """Run the segmentation job

        Args:
            job (dict): Output of build_segment_job

        Returns:
            dict: 'bias' and 'corrected' file names
        """
        raise NotImplementedError

    def _outputs(self, fname):
        dname = os.path.dirname(os.path.abspath(fname))
        bname = os.path.basename(get_nifti_basename(fname))
        return {'bias': find_bias_field(dname, bname),
                'corrected': os.path.join(dname, f'm{os.path.basename(fname)}')}


class SPMNewSegment(BiasEstimator):
    """SPM "New Segment" through nipype. Needs MATLAB and SPM12."""

    name = 'spm'

    def run(self, job):
        from nipype.interfaces import matlab, spm

        if self.params.get('spm_path'):
            matlab.MatlabCommand.set_default_paths(self.params['spm_path'])
        if self.params.get('matlab_cmd'):
            spm.SPMCommand.set_mlab_paths(matlab_cmd=self.params['matlab_cmd'],
                                          use_mcr=self.params.get('use_mcr', False))

        fname = job['channel']['vols'][0]
        seg = spm.NewSegment()
        seg.inputs.channel_files = fname
        seg.inputs.channel_info = (job['channel']['biasreg'], job['channel']['biasfwhm'],
                                   tuple(job['channel']['write']))
        seg.inputs.tissues = [((t['tpm'][0], t['tpm'][1]), t['ngaus'],
                               tuple(t['native']), tuple(t['warped'])) for t in job['tissue']]
        seg.inputs.affine_regularization = job['warp']['affreg']
        seg.inputs.warping_regularization = job['warp']['reg']
        seg.inputs.sampling_distance = job['warp']['samp']
        seg.inputs.write_deformation_fields = job['warp']['write']

        log.info(f"Running SPM New Segment on {fname}")
        seg.run(cwd=os.path.dirname(os.path.abspath(fname)))

        return self._outputs(fname)


class ANTsN4(BiasEstimator):
    """N4 bias field correction inside the nonzero voxels of the image

    N4 has no tissue model, the tissue probability map is not used. The N4
    field divides the image, it is inverted to follow the convention of the
    segmentation toolkit.
    """

    name = 'ants'

    def run(self, job):
        fname = job['channel']['vols'][0]
        img = ants.image_read(fname)
        mask = img.new_image_like((img.numpy() != 0).astype('float32'))

        log.info(f"Running N4 bias field correction on {fname}")
        field = ants.n4_bias_field_correction(img, mask=mask,
                                              shrink_factor=self.params['n4_shrink'],
                                              spline_param=job['channel']['biasfwhm'],
                                              return_bias_field=True)

        bias = 1/np.maximum(field.numpy(), np.finfo(np.float32).tiny)
        dname = os.path.dirname(os.path.abspath(fname))
        bname = os.path.basename(get_nifti_basename(fname))

        ants.image_write(img.new_image_like(bias), os.path.join(dname, f'BiasField_{bname}.nii'))
        ants.image_write(img.new_image_like(img.numpy()*bias), os.path.join(dname, f'm{os.path.basename(fname)}'))

        return self._outputs(fname)


ESTIMATORS = {'spm': SPMNewSegment, 'ants': ANTsN4}


def get_estimator(name, params):
    if name not in ESTIMATORS:
        raise ValueError(f'Not a valid bias estimator. Valid: {list(ESTIMATORS.keys())}')
    return ESTIMATORS[name](params)
