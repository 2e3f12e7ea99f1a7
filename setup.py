# setup.py
from setuptools import setup, find_packages

setup(
    name="ddp_sim",
    version="0.1.0",
    packages=find_packages(),
    install_requires=[
        "msgpack",             # ledger snapshots
        "prometheus-client",   # monitoring
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "ddp-sim=ddp_sim.cli:main",
        ],
    },
)
