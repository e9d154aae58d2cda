import json
import logging
import os

from .bids import unicort_process_dataset
from .dataio import get_nifti_basename
from .defaults import get_defaults
from .plot import plot_b1_map
from .smooth import mpm_smooth
from .stats import write_b1_stats
from .unicort import run_unicort

log = logging.getLogger(__name__)

def _load_config(config_file, backend=None):
    config = get_defaults(config_file=config_file)
    if backend:
        config['segment']['backend'] = backend
    return config

def unicort(pdw, r1, out_dir, config_file, backend, stats, qc):

    config = _load_config(config_file, backend)
    log.info(f"Running UNICORT on {r1} (mask from {pdw})")
    log.info(f"Bias estimation backend: {config['segment']['backend']}")

    out = run_unicort(pdw, r1, out_dir=out_dir, config=config)

    if stats:
        out['stats'] = write_b1_stats(out['B1u'], f"{get_nifti_basename(out['B1u'])}_stats.csv")
        log.info(f"Saved {out['stats']}")

    if qc:
        out['qc'] = f"{get_nifti_basename(out['B1u'])}_qc.png"
        plot_b1_map(out['B1u'], out['qc'])
        log.info(f"Saved {out['qc']}")

    log.info(f"Corrected R1 map: {out['R1u']}")
    log.info(f"B1+ map: {out['B1u']}")
    return out

def smooth(maps, tissue_classes, tpms, fwhm, l_tc, config_file):

    config = _load_config(config_file)
    fn_out = mpm_smooth(maps, tissue_classes, tpms, fwhm=fwhm, l_TC=l_tc, config=config)

    for fn_map, outputs in zip(maps, fn_out):
        for f in outputs:
            log.info(f"{os.path.basename(fn_map)} -> {f}")

    return fn_out

def bids_unicort(bids_dir, subjects, config_file, backend, qc):

    config = _load_config(config_file, backend)
    outputs = unicort_process_dataset(bids_dir, subjects=subjects, config=config, qc=qc)
    log.info(f"Processed {len(outputs)} subject/session(s)")
    return outputs

def print_defaults(config_file):
    config = get_defaults(config_file=config_file)
    print(json.dumps(config, indent=4))
    return config
