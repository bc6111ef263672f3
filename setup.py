#!/usr/bin/env python3
"""
Setup script for wick, a WAMP command line client
"""

from setuptools import setup, find_namespace_packages

setup(
    name="wick",
    version="0.1.0",
    description="Command line client to subscribe, publish, register and call on a WAMP router",
    packages=find_namespace_packages(include=["wick", "wick.*"]),
    install_requires=[
        "autobahn[serialization]>=23.1.2",
        "cryptography>=43.0.1",
        "typer>=0.12.3",
        "rich>=13.9.2",
        "PyYAML>=6.0.1",
    ],
    extras_require={
        "test": [
            "pytest>=8.4.2",
            "pytest-asyncio>=1.2.0",
        ],
    },
    python_requires=">=3.10",
    entry_points={
        'console_scripts': [
            'wick=wick.client.wick_cli:main',
        ],
    },
)
