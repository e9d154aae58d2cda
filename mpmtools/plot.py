"""    
For all functions that does any plotting or visualisation
"""
import matplotlib.pyplot as plt
import nibabel as nib
import numpy as np

def plot_b1_map(b1_fname, out_fname=None, vmin=80, vmax=120):
    """
    Plots the central sagittal, coronal and axial slice of a B1+ map.
    
    Parameters
    ----------
    b1_fname : str
        The B1+ map in percent of the nominal flip angle.

    out_fname : str, optional
        Save the figure to this file. Default is to return it only.

    vmin, vmax : float
        Colour scale limits.

    Returns
    -------
    Figure
    """
    data = nib.load(b1_fname).get_fdata()
    data = np.where(data > 0, data, np.nan)
    cx, cy, cz = [s//2 for s in data.shape[:3]]

    fig = plt.figure(figsize=(14,5))

    slices = [data[cx,:,:], data[:,cy,:], data[:,:,cz]]
    titles = ['Sagittal', 'Coronal', 'Axial']
    for i in range(3):
        fig.add_subplot(1,3,i+1)
        im = plt.imshow(np.rot90(slices[i]), cmap='jet', vmin=vmin, vmax=vmax)
        plt.title(titles[i])
        plt.axis('off')

    fig.colorbar(im, ax=fig.axes, label='B1+ [p.u. nominal FA]', shrink=0.8)

    if out_fname:
        fig.savefig(out_fname, dpi=100)
        plt.close(fig)

    return fig
