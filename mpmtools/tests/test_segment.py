"""Tests for mpmtools.segment."""

import os

import nibabel as nib
import numpy as np
import numpy.testing as npt
import pytest

from mpmtools.defaults import get_defaults
from mpmtools.segment import (ANTsN4, SPMNewSegment, build_segment_job,
                              find_bias_field, get_estimator)
from mpmtools.tests.helpers import write_nii


def test_build_segment_job():
    params = get_defaults('segment')
    job = build_segment_job('/a/hR1.nii', '/spm/tpm/enhanced_TPM.nii', 1e-3, 60, params)

    assert job['channel'] == {'vols': ['/a/hR1.nii'], 'biasreg': 1e-3,
                              'biasfwhm': 60, 'write': [True, True]}
    assert len(job['tissue']) == 6
    assert job['tissue'][3] == {'tpm': ['/spm/tpm/enhanced_TPM.nii', 4], 'ngaus': 3,
                                'native': [False, False], 'warped': [False, False]}
    assert job['warp'] == {'reg': [0, 0.001, 0.5, 0.05, 0.2], 'affreg': 'mni',
                           'samp': 3, 'write': [False, False]}
    # not passed to the toolkit, so not recorded
    assert 'mrf' not in job['warp']


def test_find_bias_field(tmp_path):
    with pytest.raises(FileNotFoundError):
        find_bias_field(str(tmp_path), 'hR1')

    open(tmp_path / 'BiasField_hR1.img', 'w').close()
    assert find_bias_field(str(tmp_path), 'hR1') == str(tmp_path / 'BiasField_hR1.img')

    # nifti is preferred
    open(tmp_path / 'BiasField_hR1.nii', 'w').close()
    assert find_bias_field(str(tmp_path), 'hR1') == str(tmp_path / 'BiasField_hR1.nii')


def test_get_estimator():
    params = get_defaults('segment')
    assert isinstance(get_estimator('spm', params), SPMNewSegment)
    assert isinstance(get_estimator('ants', params), ANTsN4)
    with pytest.raises(ValueError):
        get_estimator('fsl', params)


def test_ants_n4(tmp_path):
    shape = (24, 24, 24)
    xx, yy, zz = np.mgrid[:shape[0], :shape[1], :shape[2]]
    r2 = (xx - 12)**2 + (yy - 12)**2 + (zz - 12)**2
    head = r2 < 10**2
    field = 1 + 0.2*(xx - 12)/12
    data = np.where(head, 1.0*field, 0)
    fname = write_nii(tmp_path / 'hR1.nii', data)

    params = get_defaults('segment')
    params['n4_shrink'] = 2
    job = build_segment_job(fname, 'unused', 1e-3, 60, params)

    out = ANTsN4(params).run(job)

    assert out['bias'] == str(tmp_path / 'BiasField_hR1.nii')
    assert out['corrected'] == str(tmp_path / 'mhR1.nii')
    bias = nib.load(out['bias']).get_fdata()
    corrected = nib.load(out['corrected']).get_fdata()
    assert bias.shape == shape
    assert np.all(np.isfinite(bias)) and np.all(bias > 0)
    npt.assert_allclose(corrected, bias*data, rtol=1e-4, atol=1e-6)
    npt.assert_equal(corrected[~head], 0)
    assert os.path.exists(out['corrected'])


@pytest.fixture
def spm_calls(monkeypatch):
    """nipype SPM interfaces that record their setup and inputs instead of
    starting MATLAB. The run writes the files SPM would write."""
    spm = pytest.importorskip('nipype.interfaces.spm')
    from nipype.interfaces import matlab

    calls = {'mlab': [], 'paths': [], 'runs': []}

    def set_mlab_paths(cls, matlab_cmd=None, paths=None, use_mcr=None):
        calls['mlab'].append({'matlab_cmd': matlab_cmd, 'use_mcr': use_mcr})

    def set_default_paths(cls, paths):
        calls['paths'].append(paths)

    def run(self, cwd=None, **kwargs):
        calls['runs'].append({'inputs': self.inputs, 'cwd': cwd})
        data = np.ones((4, 4, 4))
        write_nii(os.path.join(cwd, 'BiasField_hR1.nii'), data)
        write_nii(os.path.join(cwd, 'mhR1.nii'), data)

    monkeypatch.setattr(spm.base.Info, 'getinfo', classmethod(lambda cls, *a, **k: None), raising=False)
    monkeypatch.setattr(spm.SPMCommand, 'set_mlab_paths', classmethod(set_mlab_paths))
    monkeypatch.setattr(matlab.MatlabCommand, 'set_default_paths', classmethod(set_default_paths))
    monkeypatch.setattr(spm.NewSegment, 'run', run)
    return calls


def _spm_inputs(tmp_path):
    fname = write_nii(tmp_path / 'hR1.nii', np.ones((4, 4, 4)))
    tpm = write_nii(tmp_path / 'TPM.nii', np.full((4, 4, 4, 6), 1/6))
    return fname, tpm


def test_spm_new_segment_inputs(tmp_path, spm_calls):
    fname, tpm = _spm_inputs(tmp_path)
    params = get_defaults('segment')
    job = build_segment_job(fname, tpm, 1e-3, 60, params)

    out = SPMNewSegment(params).run(job)

    assert out == {'bias': str(tmp_path / 'BiasField_hR1.nii'),
                   'corrected': str(tmp_path / 'mhR1.nii')}
    assert len(spm_calls['runs']) == 1
    assert spm_calls['runs'][0]['cwd'] == str(tmp_path)
    # no MATLAB setup without configured paths
    assert spm_calls['mlab'] == []
    assert spm_calls['paths'] == []

    inputs = spm_calls['runs'][0]['inputs']
    assert [str(f) for f in inputs.channel_files] == [fname]
    assert inputs.channel_info == (0.001, 60.0, (True, True))
    assert len(inputs.tissues) == 6
    for k, ngaus in enumerate([2, 2, 2, 3, 4, 2]):
        (tissue_tpm, idx), n, native, warped = inputs.tissues[k]
        assert str(tissue_tpm) == tpm
        assert idx == k+1
        assert n == ngaus
        assert tuple(native) == (False, False)
        assert tuple(warped) == (False, False)
    assert list(inputs.warping_regularization) == [0, 0.001, 0.5, 0.05, 0.2]
    assert inputs.affine_regularization == 'mni'
    assert inputs.sampling_distance == 3
    assert list(inputs.write_deformation_fields) == [False, False]


@pytest.mark.parametrize('use_mcr', [False, True])
def test_spm_new_segment_matlab_setup(tmp_path, spm_calls, use_mcr):
    fname, tpm = _spm_inputs(tmp_path)
    params = get_defaults('segment')
    params['spm_path'] = '/opt/spm12'
    params['matlab_cmd'] = '/opt/spm12/run_spm12.sh /opt/mcr/v97 script'
    params['use_mcr'] = use_mcr

    SPMNewSegment(params).run(build_segment_job(fname, tpm, 1e-3, 60, params))

    assert spm_calls['paths'] == ['/opt/spm12']
    assert spm_calls['mlab'] == [{'matlab_cmd': '/opt/spm12/run_spm12.sh /opt/mcr/v97 script',
                                  'use_mcr': use_mcr}]


def test_spm_new_segment_default_no_mcr(tmp_path, spm_calls):
    fname, tpm = _spm_inputs(tmp_path)
    params = get_defaults('segment')
    params['matlab_cmd'] = 'matlab -nodesktop -nosplash'

    SPMNewSegment(params).run(build_segment_job(fname, tpm, 1e-3, 60, params))

    assert spm_calls['mlab'] == [{'matlab_cmd': 'matlab -nodesktop -nosplash', 'use_mcr': False}]
