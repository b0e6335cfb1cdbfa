"""
Data loaders package.
"""

from loaders.numpy_loader import NumpyVolumeLoader, load_volume
from loaders.synthetic import SyntheticVolumeLoader

__all__ = [
    'NumpyVolumeLoader',
    'SyntheticVolumeLoader',
    'load_volume',
]
