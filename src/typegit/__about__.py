"""Metadata for typegit package."""

from __future__ import annotations

__title__ = "typegit"
__package_name__ = "typegit"
__version__ = "0.4.0"
__description__ = "Typed, pythonic client layer over the git command line"
__email__ = "maintainers@typegit.dev"
__author__ = "typegit contributors"
__github__ = "https://github.com/typegit/typegit"
__docs__ = "https://typegit.readthedocs.io"
__tracker__ = "https://github.com/typegit/typegit/issues"
__pypi__ = "https://pypi.org/project/typegit/"
__license__ = "MIT"
__copyright__ = "Copyright 2025- typegit contributors"
