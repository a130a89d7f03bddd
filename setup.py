#!/usr/bin/env python3
import os

from setuptools import find_packages, setup


def read_version():
    version = {}
    path = os.path.join(os.path.dirname(os.path.realpath(__file__)), "src", "febexdsp", "_version.py")
    with open(path) as f:
        exec(f.read(), version)
    return version["version"]


setup(
    name='febexdsp',
    version=read_version(),
    author='Miniball',
    description='Moving-window deconvolution and calibration of FEBEX digitizer traces',
    long_description='',
    package_dir={'': 'src'},
    packages=find_packages('src'),
    python_requires='>=3.9',
    install_requires=[
        'colorlog',
        'numba',
        'numpy',
        'pyyaml',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-cov',
        ],
    },
    entry_points={
        'console_scripts': [
            'febexdsp = febexdsp.cli:febexdsp_cli',
        ],
    },
    zip_safe=False,
)
