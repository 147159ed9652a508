"""Setup script for RPCProxy."""

from setuptools import setup, find_packages

setup(
    packages=find_packages(include=["rpcproxy", "rpcproxy.*"]),
)
