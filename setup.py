#! /usr/bin/env python
# Copyright 2026 the levfit developers and collaborators.
# Licensed under the MIT License.

from setuptools import setup


def get_long_desc():
    in_preamble = True
    lines = []

    with open("README.md", "rt", encoding="utf8") as f:
        for line in f:
            if in_preamble:
                if line.startswith("<!--pypi-begin-->"):
                    in_preamble = False
            else:
                if line.startswith("<!--pypi-end-->"):
                    break
                else:
                    lines.append(line)

    return "".join(lines)


setup(
    name="levfit",
    version="0.1.0",  # also edit levfit/__init__.py, docs/source/conf.py!
    zip_safe=False,
    packages=[
        "levfit",
    ],
    # The solver is pure Numpy; nothing else is needed at runtime.
    install_requires=[
        "numpy >= 1.17",
    ],
    extras_require={
        "docs": [
            "numpydoc",
            "sphinx",
            "sphinx_rtd_theme",
        ],
        "test": [
            "pytest",
        ],
    },
    python_requires=">=3.7",
    description="Levenberg-Marquardt curve fitting with box and linear constraints",
    license="MIT",
    keywords="fitting least-squares levenberg-marquardt science",
    long_description=get_long_desc(),
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Topic :: Scientific/Engineering :: Mathematics",
    ],
)
