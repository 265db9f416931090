"""
Setup script for closed-function
"""

from setuptools import setup, find_packages
import pathlib

# Read the README file
HERE = pathlib.Path(__file__).parent
README = (HERE / "README.md").read_text(encoding="utf-8")

# Basic setup configuration
setup(
    name="closed-function",
    version="0.1.0",
    description="Build-time isolation of closed function bodies into self-contained bundles",
    long_description=README,
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    include_package_data=True,
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.11.5",
        "pydantic-settings>=2.12.0",
        "pyflakes>=3.2.0",
        "stickytape>=0.2.1",
        "structlog>=24.1.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0.0",
            "pytest-asyncio>=0.23.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "closed-function=closed_function.interfaces.cli:entry_point",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
        "License :: OSI Approved :: MIT License",
    ],
    keywords="build isolation bundling ast closure",
)
