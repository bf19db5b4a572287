#!/usr/bin/env python3
# setup.py: install the repo-group-sync command
#
# Install:
#   pip install -e .
#   pip install -e ".[test]"   # with test dependencies
#
# Run:
#   repo-group-sync clone-group URL ...
#   python main.py clone-group URL ...

from setuptools import setup, find_packages

try:
    with open("README.md", "r", encoding="utf-8") as fh:
        long_description = fh.read()
except FileNotFoundError:
    long_description = "Clone and update groups of git repositories with live progress"

setup(
    name="repo-group-sync",
    version="1.0.0",
    description="Clone and update groups of git repositories with live, per-repository progress",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages("src"),
    package_dir={"": "src"},
    python_requires=">=3.8",
    install_requires=[
        "colorama>=0.4.6",
        "rich>=13.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "repo-group-sync=repo_group_sync.cli:run",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Version Control :: Git",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
