# setup.py
from setuptools import setup, find_packages

setup(
    name="amm_v2",
    version="0.1.0",
    packages=find_packages(include=["amm_v2", "amm_v2.*"]),
    python_requires=">=3.10",
    install_requires=[
        "msgpack",            # pool snapshots
        "pycryptodome",       # keccak-256
        "prometheus_client",  # pool metrics
        "psutil",             # monitoring
    ],
    extras_require={
        "test": ["pytest"],
    },
)
