"""Legacy build script kept for environments that still invoke setup.py directly.

All metadata lives in pyproject.toml (PEP 621). The package is pure Python; the
native side comes from the edsdk-python distribution.
"""

from setuptools import setup

setup()
