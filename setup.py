#!/usr/bin/env python3
"""Setup script for apollo."""

from setuptools import setup, find_packages
import os

HERE = os.path.dirname(os.path.abspath(__file__))


def read_requirements(filename):
    """Read requirements from file."""
    with open(os.path.join(HERE, filename), 'r') as f:
        return [line.strip() for line in f if line.strip() and not line.startswith('#')]


def read_readme():
    """Read README file."""
    with open(os.path.join(HERE, 'README.md'), 'r', encoding='utf-8') as f:
        return f.read()


setup(
    name="apollo-music",
    version="0.3.0",
    description="Catalog a music library, find duplicates and repair broken playlists",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    install_requires=read_requirements('requirements.txt'),
    extras_require={
        'dev': read_requirements('requirements-dev.txt'),
    },
    entry_points={
        'console_scripts': [
            'apollo=apollo.cli:app',
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Sound/Audio",
        "Topic :: Utilities",
    ],
    python_requires=">=3.11",
    keywords="music, flac, playlist, m3u, duplicates, catalog",
)
