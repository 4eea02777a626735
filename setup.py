"""
Setuptools build script for ted.

This file allows installation of the ``ted`` package via
``pip install .``.  It declares the required dependencies and
registers a console script entry point named ``ted``.  When
installed, users can invoke the CLI with ``ted`` from their shell.

Install the ``test`` extra (``pip install -e .[test]``) to run the
test suite with pytest.
"""

from setuptools import setup, find_packages

setup(
    name="ted-cli",
    version="0.1.0",
    description="AI-powered command line assistant translating natural language into shell commands",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "click>=8.0",
        "PyYAML>=5.4",
        "google-genai>=1.0",
        "fastapi>=0.80",
        "uvicorn>=0.20",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "httpx>=0.24",
        ],
    },
    entry_points={
        "console_scripts": [
            "ted=ted.cli:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
)
