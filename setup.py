#!/usr/bin/env python3
"""
RESP-KV Setup Script
====================
Allows installation of the respkv package.

Usage:
    pip install -e .           # Development install
    pip install -e ".[test]"   # Development install with test tools
    pip install .              # Regular install
"""

from setuptools import setup, find_packages

setup(
    name="respkv",
    version="1.0.0",
    description="Minimal Redis-protocol compatible in-memory key-value server",
    packages=find_packages(include=["respkv", "respkv.*"]),
    python_requires=">=3.10",
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "respkv=respkv.server:main",
        ],
    },
)
