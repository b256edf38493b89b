"""Setup configuration for n8nstack."""

import os
import re

from setuptools import find_packages, setup

here = os.path.abspath(os.path.dirname(__file__))

# Get version from package without importing it
with open(os.path.join(here, "n8nstack", "__init__.py"), encoding="utf-8") as f:
    package_init = f.read()
__version__ = re.search(r'^__version__ = "([^"]+)"', package_init, re.M).group(1)
__author__ = re.search(r'^__author__ = "([^"]+)"', package_init, re.M).group(1)

# Get the long description from the README file
with open(os.path.join(here, "README.md"), encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="n8nstack",
    version=__version__,
    description="Single-host n8n installer and operations tool",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author=__author__,
    keywords="n8n docker compose nginx letsencrypt installer backup",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={"n8nstack": ["templates/*.j2"]},
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=[
        "click>=8.0.0",
        "pyyaml>=6.0",
        "docker>=6.0.0",
        "jinja2>=3.0.0",
        "cryptography>=42.0.0",
        "jsonschema>=4.0.0",
        "requests>=2.28.0",
        "psutil>=5.9.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
        ],
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.12.0",
            "mypy>=0.991",
        ],
    },
    entry_points={
        "console_scripts": [
            "n8nstack=n8nstack.cli:cli",
        ],
    },
)
