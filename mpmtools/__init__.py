__version__ = '0.1'

def get_version():
    return f'mpmtools v{__version__}'
