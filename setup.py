"""
setup file for Orbit Shell
Run: pip install -e .[test]
"""

from setuptools import setup, find_packages

setup(
    name='orbitshell',
    version='1.0.0',
    description='Desktop shell front end with command blocks, completion and file search',
    packages=find_packages(include=['orbitshell', 'orbitshell.*']),
    py_modules=['main', 'debug_config'],
    python_requires='>=3.9',
    install_requires=['PyQt5>=5.15.0', 'qasync>=0.23.0', 'aiofiles>=23.1.0'],
    extras_require={
        'test': ['pytest>=7.0'],
    },
    entry_points={
        'gui_scripts': ['orbitshell=main:main'],
    },
)
