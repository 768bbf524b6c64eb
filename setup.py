#!/usr/bin/env python3
"""Setup script for SC3K Linux Demangle"""

from setuptools import setup

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="sc3k-linux-demangle",
    version="1.0.0",
    author="SC3K Linux Demangle Contributors",
    description="Turns mangled SimCity 3000 Unlimited Linux debug symbols into C++ interface declarations",
    long_description=long_description,
    long_description_content_type="text/markdown",
    py_modules=["sc3k_demangle", "gnu2_demangle"],
    package_dir={"": "src"},
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Disassemblers",
        "License :: OSI Approved :: GNU General Public License v3 or later (GPLv3+)",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.8",
    install_requires=[
        "cxxfilt>=0.3.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "sc3k-demangle=sc3k_demangle:main",
        ],
    },
)
