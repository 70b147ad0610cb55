"""Setup script for the aiodispose package."""

from setuptools import setup, find_packages

requires = ["anyio>=4.0.0", "outcome>=1.0.1"]

__version__ = None
exec(open("src/aiodispose/version.py").read())

setup(
    name="aiodispose",
    version=__version__,
    author="aiodispose contributors",
    package_dir={"": "src"},
    packages=find_packages("src", exclude=["test"]),
    include_package_data=True,
    install_requires=requires,
    extras_require={"test": ["pytest>=7.0", "trio>=0.23"]},
    python_requires=">=3.8",
    test_suite="test",
)
