"""
Configuration d'installation pour Crucible Monitor
"""

import re
from pathlib import Path

from setuptools import find_packages, setup

# Read the version without importing the package (its dependencies may not be installed yet)
version_file = Path(__file__).parent / "crucible" / "__version__.py"
__version__ = re.search(r'__version__ = "([^"]+)"', version_file.read_text(encoding="utf-8")).group(1)

# Lecture du README pour la description longue
readme_file = Path(__file__).parent / "README.md"
long_description = ""
if readme_file.exists():
    long_description = readme_file.read_text(encoding="utf-8")

setup(
    name="crucible-monitor",
    version=__version__,
    description="Classification temps réel des matchs et de la qualité de connexion",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Crucible Monitor Contributors",
    author_email="",
    license="MIT",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={
        "": ["*.yaml"],
    },
    include_package_data=True,
    install_requires=[
        "pyyaml>=6.0,<7.0",
        "rich>=13.7.0,<14.0",
        "click>=8.1.7,<9.0",
        "numpy>=1.24.0",
        "psutil>=5.9.0,<6.0",
        "python-json-logger>=2.0.7",
        "httpx>=0.25.0",
        "fastapi>=0.104.0",
        "pydantic>=2.0",
        "uvicorn>=0.24.0",
        "aiosqlite>=0.19.0",
        "asyncpg>=0.29.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "hypothesis>=6.88.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "crucible=crucible.cli:main",
        ],
    },
    python_requires=">=3.9",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Topic :: System :: Networking :: Monitoring",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    keywords="network latency jitter packet-loss matchmaking monitoring",
)
