#!/usr/bin/env python3
"""
Setup script for the root document scanner.
"""
from setuptools import setup

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="root-scanner",
    version="1.0.0",
    author="Root Scanner Contributors",
    author_email="",
    description="Concurrent HTTPS root document scanner with PostgreSQL storage",
    long_description=long_description,
    long_description_content_type="text/markdown",
    py_modules=[
        "cli",
        "completion_monitor",
        "fetcher",
        "record_store",
        "root_scanner",
        "scan_config",
        "work_queue",
        "worker_pool",
    ],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Security",
        "Topic :: Internet :: WWW/HTTP",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
    install_requires=requirements,
    extras_require={
        "tests": ["pytest>=7.0", "hypothesis>=6.0"],
    },
    entry_points={
        "console_scripts": [
            "root-scanner=cli:main",
        ],
    },
    keywords="scanner https async postgresql http",
)
