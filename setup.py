#!/usr/bin/env python3
"""
Packaging for MultiMount.

Install with ``pip install -e .`` (add ``[test]`` for the test suite).
"""

from setuptools import setup, find_packages

setup(
    name="multimount",
    version="0.3.0",
    description="Universal disk and filesystem image mounter for retro computer formats",
    license="MIT",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.10",
    install_requires=[
        "pydantic>=2.5.0",
        "rich>=13.7.0",
        "python-magic>=0.4.27",
    ],
    extras_require={
        "amiga": ["amitools>=0.7.0"],
        "test": ["pytest>=7.4.0"],
    },
    entry_points={
        "console_scripts": [
            "multimount=multimount.main:main",
        ],
    },
)
