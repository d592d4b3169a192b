#!/usr/bin/env python3
"""
Setup script for keyhabit
"""

from setuptools import setup, find_packages
import os
import re


def read_file(filename):
    with open(os.path.join(os.path.dirname(__file__), filename), encoding='utf-8') as f:
        return f.read()


# Version lives in the package; read it without importing the package
__version__ = re.search(
    r'^__version__ = "([^"]+)"', read_file('keyhabit/__init__.py'), re.M
).group(1)

setup(
    name='keyhabit',
    version=__version__,
    description='Break inefficient keyboard habits: throttle repeated motion keys and hint better sequences',
    long_description=read_file('README.md'),
    long_description_content_type='text/markdown',
    packages=find_packages(exclude=['tests', 'docs']),
    python_requires='>=3.8',
    install_requires=[
        'evdev',         # Reading and grabbing keyboards under /dev/input, uinput re-emission
        'python-xlib',   # WM_CLASS of the focused window for disabled_apps
    ],
    extras_require={
        'dev': [
            'pytest>=7.0',
            'pytest-cov',
            'pytest-timeout',
        ],
    },
    entry_points={
        'console_scripts': [
            'keyhabit=keyhabit.cli:main',
        ],
    },
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: End Users/Desktop',
        'Topic :: Utilities',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Operating System :: POSIX :: Linux',
        'Environment :: X11 Applications',
    ],
)
