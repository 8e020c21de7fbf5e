# ---------------------------------------------------------------------
# Gufo Netloss: Network loss monitor
# Python build
# ---------------------------------------------------------------------
# Copyright (C) 2022-26, Gufo Labs
# ---------------------------------------------------------------------

# Python modules
import os

# Third-party modules
from setuptools import find_namespace_packages, setup


def get_version() -> str:
    path = os.path.join("src", "gufo", "netloss", "__init__.py")
    with open(path) as f:
        for line in f:
            if line.startswith("__version__"):
                return line.split("=", 1)[1].strip().strip('"')
    msg = "__version__ is not found"
    raise RuntimeError(msg)


setup(
    name="gufo_netloss",
    version=get_version(),
    description="Gufo Netloss: asyncio ICMP packet loss and latency monitor",
    author="Gufo Labs",
    license="BSD",
    python_requires=">=3.11",
    package_dir={"": "src"},
    packages=find_namespace_packages(where="src", include=["gufo.*"]),
    package_data={"gufo.netloss": ["py.typed"]},
    zip_safe=False,
    install_requires=[
        "scapy>=2.5",
        "prometheus_client>=0.17",
        "rich>=13.0",
    ],
    extras_require={"test": ["pytest>=7.0"]},
    entry_points={
        "console_scripts": ["gufo-netloss = gufo.netloss.cli:main"],
    },
)
