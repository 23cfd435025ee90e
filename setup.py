#!/usr/bin/env python
# -*- coding: utf-8 -*-

import os.path
import re
from pkgutil import walk_packages

from setuptools import setup


def find_packages(path=["."], prefix=""):
    yield prefix
    prefix = prefix + "."
    for _, name, ispkg in walk_packages(path, prefix):
        if ispkg:
            yield name


def read_requirements(path):
    requirements = []
    with open(path) as requirements_file:
        for req in requirements_file.read().splitlines():
            # skip comments, hash lines and blanks
            if not req.strip() or re.match(r"\s*#", req) or re.match(r"\s*--hash", req):
                continue
            requirements.append(req.split(" ")[0])
    return requirements


with open(os.path.join("forceapi", "version.txt"), "r") as version_file:
    version = version_file.read().strip()

with open("README.rst", "rb") as readme_file:
    readme = readme_file.read().decode("utf-8")

with open("HISTORY.rst", "rb") as history_file:
    history = history_file.read().decode("utf-8")

setup(
    name="forceapi",
    version=version,
    description="Client for the Salesforce REST, Bulk 2.0, Tooling and Metadata APIs",
    long_description=readme + "\n\n" + history,
    long_description_content_type="text/x-rst",
    packages=list(find_packages(["forceapi"], "forceapi")),
    package_dir={"forceapi": "forceapi"},
    package_data={"forceapi": ["version.txt"]},
    include_package_data=True,
    install_requires=read_requirements("requirements/prod.txt"),
    extras_require={"test": read_requirements("requirements/dev.txt")},
    license="BSD license",
    zip_safe=False,
    keywords="salesforce",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: BSD License",
        "Natural Language :: English",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.8",
)
