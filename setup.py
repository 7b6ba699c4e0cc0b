"""
Setup Configuration for bivardpp
================================

Dependency groups and package discovery for the composite likelihood engine.

Key Features:
- Core numeric stack (numpy, scipy) plus PyYAML for configuration files
- Test and development extras (pip install bivardpp[dev])
"""

import sys
from pathlib import Path
from setuptools import setup, find_packages

# Get the directory containing setup.py
HERE = Path(__file__).parent.resolve()


def read_readme():
    """Read README file for long description."""
    readme_path = HERE / "README.md"
    if readme_path.exists():
        return readme_path.read_text(encoding="utf-8")
    return "Composite likelihood objective and gradient for two-type determinantal point patterns"


def read_version():
    """Read version from package __init__.py."""
    init_path = HERE / "bivardpp" / "__init__.py"
    if init_path.exists():
        with open(init_path, "r") as f:
            for line in f:
                if line.startswith("__version__"):
                    version = line.split("=")[1].strip().strip("\"'")
                    return version
    return "1.0.0"  # Fallback version


INSTALL_REQUIRES = [
    "numpy>=1.21.0",
    "scipy>=1.7.0",
    "pyyaml>=5.4.0",
]

EXTRAS_REQUIRE = {
    # Test suite
    "test": [
        "pytest>=6.2.0",
        "pytest-cov>=2.12.0",
        "hypothesis>=6.0.0",
    ],
    # Development dependencies
    "dev": [
        "pytest>=6.2.0",
        "pytest-cov>=2.12.0",
        "hypothesis>=6.0.0",
        "black>=21.0.0",
        "ruff>=0.0.290",
        "mypy>=0.910",
    ],
}

EXTRAS_REQUIRE["all"] = sorted(set(sum(EXTRAS_REQUIRE.values(), [])))

CLASSIFIERS = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Topic :: Scientific/Engineering :: Mathematics",
    "License :: OSI Approved :: MIT License",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Operating System :: OS Independent",
]

KEYWORDS = [
    "point process", "determinantal point process", "spatial statistics",
    "composite likelihood", "multivariate", "scientific computing",
]


def check_python_version():
    """Check if Python version is supported."""
    if sys.version_info < (3, 10):
        sys.exit(f"Python 3.10 or higher is required (current version: {sys.version})")


if __name__ == "__main__":
    check_python_version()

    setup(
        name="bivardpp",
        version=read_version(),
        description="Composite likelihood objective and gradient for two-type determinantal point patterns",
        long_description=read_readme(),
        long_description_content_type="text/markdown",
        author="bivardpp Development Team",
        packages=find_packages(exclude=["tests*", "docs*", "examples*"]),
        install_requires=INSTALL_REQUIRES,
        extras_require=EXTRAS_REQUIRE,
        python_requires=">=3.10",
        classifiers=CLASSIFIERS,
        keywords=KEYWORDS,
        license="MIT",
        zip_safe=False,
    )
