"""
This module configures the package for distribution and installation.
"""

from setuptools import setup, find_packages

setup(
    name="pydeepzoom",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.8",
    install_requires=["mpmath", "numpy", "pillow"],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "pydeepzoom = pydeepzoom.__main__:main",
        ]
    },
)
