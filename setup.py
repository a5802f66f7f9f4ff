"""
Packaging for qcmd, the ``q`` command.

``pip install .`` puts ``q`` on the PATH; it needs click for the
command line, PyYAML for the config file and httpx for the hosted
model APIs.  ``pip install -e .[test]`` adds pytest for ``tests/``.
"""

from setuptools import setup, find_packages

setup(
    name="qcmd",
    version="0.2.0",
    description="AI-powered terminal assistant translating natural language into shell commands",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.8",
    install_requires=[
        "click>=8.1",
        "PyYAML>=5.4",
        "httpx>=0.23",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "q=qcmd.cli:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Environment :: Console",
    ],
)
