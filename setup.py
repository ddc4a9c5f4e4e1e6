#!/usr/bin/python3
# Setup file for regraft
# Copyright (C) 2026 Regraft contributors
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later

from setuptools import setup

tests_require = ["pytest"]


setup(
    name="regraft",
    version="0.1.0",
    description="Plan and run interactive git rebases",
    long_description=(
        "Regraft turns an interactive rebase into an editable plan: reorder, "
        "reword, edit, squash, fixup or drop commits, check the plan for "
        "risky rewrites, then run it step by step through git."
    ),
    license="Apache-2.0 OR GPL-2.0-or-later",
    python_requires=">=3.10",
    packages=["regraft"],
    package_data={"": ["py.typed"]},
    install_requires=[
        "dulwich>=0.25.0",
        "typing_extensions>=4.0",
    ],
    extras_require={
        "test": tests_require,
    },
    entry_points={
        "console_scripts": [
            "regraft=regraft.cli:_main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "License :: OSI Approved :: Apache Software License",
        "License :: OSI Approved :: GNU General Public License v2 or later (GPLv2+)",
        "Programming Language :: Python :: 3",
        "Operating System :: POSIX",
        "Topic :: Software Development :: Version Control",
    ],
)
