# setup.py
from setuptools import setup, find_packages

setup(
    name='lane_occupancy',
    version='0.1.0',
    packages=find_packages(where='src'),
    package_dir={'': 'src'},
    python_requires='>=3.8',
    install_requires=['numpy', 'opencv-python', 'pyzmq', 'pyyaml'],
    extras_require={
        'test': ['pytest'],
    },
)
