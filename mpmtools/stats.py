import nibabel as nib
import numpy as np
import pandas as pd

def b1_stats(b1_fname):
    """ Summary statistics of a B1+ map

    Parameters
    ----------
    b1_fname : str
        The B1+ map. Voxels outside the head mask are 0 and are left out.
    
    Returns
    -------
    stats : pandas dataframe
        A dataframe with count, mean, std, median, min, max, p05, p95.
    """
    data = nib.load(b1_fname).get_fdata()
    vals = data[np.isfinite(data) & (data != 0)]

    if vals.size == 0:
        raise ValueError(f'No nonzero voxels in {b1_fname}')

    stats = pd.DataFrame({'count': [vals.size],
                          'mean': [np.mean(vals)],
                          'std': [np.std(vals)],
                          'median': [np.median(vals)],
                          'min': [np.min(vals)],
                          'max': [np.max(vals)],
                          'p05': [np.percentile(vals, 5)],
                          'p95': [np.percentile(vals, 95)]})
    return stats

def write_b1_stats(b1_fname, out_csv):
    df = b1_stats(b1_fname)
    df.to_csv(out_csv, index=False)
    return out_csv
