# This should be only one line. If it must be multi-line, indent the second
# line onwards to keep the PKG-INFO file format intact.
"""Environment variables meet secret storage: run commands with secrets \
from an age encrypted store or another backend.
"""

from setuptools import find_packages, setup

version = open("src/envchain/version.txt").read().strip()

setup(
    name="envchain",
    version=version,
    install_requires=[
        "ConfigUpdater",
        "cryptography",
        "importlib_metadata",
        "py",
        "pyrage", ],
    extras_require={
        "test": [
            "pytest",
            "pytest-coverage",
            "pytest-instafail",
            "pytest-timeout", ]},
    entry_points="""
        [console_scripts]
            envchain = envchain.main:main
        [envchain.backends]
            age = envchain.backend.age:AgeBackend
    """,
    license="BSD (2-clause)",
    keywords="secrets environment age",
    classifiers="""\
License :: OSI Approved :: BSD License
Programming Language :: Python
Programming Language :: Python :: 3
Programming Language :: Python :: 3.8
Programming Language :: Python :: 3.9
Programming Language :: Python :: 3.10
Programming Language :: Python :: 3.11
Programming Language :: Python :: 3.12
Programming Language :: Python :: 3 :: Only
"""[:-1].split("\n"),
    description=__doc__.strip(),
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    packages=find_packages("src"),
    package_dir={"": "src"},
    package_data={"envchain": ["version.txt"]},
    include_package_data=True,
    zip_safe=False,
    python_requires=">=3.8")
