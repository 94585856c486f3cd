#!/usr/bin/env python
from setuptools import setup

from sdboot import __version__ as sdboot_version

setup(
    name='sdboot',
    version=sdboot_version,
    description=("""Read and rewrite systemd-boot loader configuration."""),
    author='The sdboot developers',
    license="GPLv2",
    packages=['sdboot'],
    python_requires='>=3.7',
    extras_require={
        'test': ['pytest'],
    },
)


# vim: set et ts=4 sw=4 :
