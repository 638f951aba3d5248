# -*- coding: utf-8 -*-

import os

from setuptools import find_packages, setup

extras_require = {
    "test": [
        "pytest>=7.0",
        "pytest-cov>=2.10",
        "pytest-instafail>=0.4",
        "pytest-xdist>=3.0",
        "hypothesis[lark]>=6.0",
    ],
    "lint": [
        "black==23.12.0",
        "flake8==6.1.0",
        "flake8-bugbear==23.12.2",
        "flake8-use-fstring==1.4",
        "isort==5.13.2",
        "mypy==1.5",
    ],
    "dev": ["ipython", "pre-commit", "twine"],
}

extras_require["dev"] = extras_require["test"] + extras_require["lint"] + extras_require["dev"]

long_description = ""
if os.path.exists("README.md"):
    with open("README.md", "r") as f:
        long_description = f.read()


setup(
    name="irdeps",
    version="0.1.0",
    description="irdeps: control flow, dominance and dependence analysis for a block-structured IR",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="irdeps developers",
    author_email="",
    license="Apache License 2.0",
    keywords="compiler ir static analysis dominators control dependence",
    include_package_data=True,
    packages=find_packages(include=["irdeps", "irdeps.*"]),
    python_requires=">=3.10,<4",
    install_requires=["lark>=1.1.9,<2"],
    tests_require=extras_require["test"],
    extras_require=extras_require,
    entry_points={"console_scripts": ["irdeps=irdeps.cli.irdeps_main:_parse_cli_args"]},
    classifiers=[
        "Intended Audience :: Developers",
        "License :: OSI Approved :: Apache Software License",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
