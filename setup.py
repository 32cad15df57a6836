# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
#
# This source code is licensed under the BSD-style license found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

from setuptools import find_namespace_packages, setup

version = "0.1.0.dev0"


setup(
    name="nmtsearch",
    version=version,
    description="Batched beam-search decoding for sequence-to-sequence models",
    long_description_content_type="text/plain",
    license="MIT",
    keywords=["machine translation", "beam search"],
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
    ],
    package_dir={"": "src"},
    packages=find_namespace_packages(where="src"),
    package_data={"nmtsearch": ["py.typed"]},
    zip_safe=False,
    python_requires=">=3.10",
    install_requires=[
        "rich~=13.7",
        "ruamel.yaml~=0.18",
        "torch>=2.1",
        "typing_extensions~=4.12",
    ],
    extras_require={
        "test": [
            "pytest~=8.0",
        ],
    },
)
