"""
setup.py for ara-vault.
"""
from setuptools import setup, find_packages
from pathlib import Path

# Read README
readme_path = Path(__file__).parent / "README.md"
long_description = readme_path.read_text(encoding="utf-8") if readme_path.exists() else ""

setup(
    name="ara-vault",
    version="0.1.0",
    author="ARA Framework Team",
    description="Ara Vault: client-encrypted, versioned agent memory stored as signed ledger documents",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["ara_vault", "ara_vault.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Security :: Cryptography",
    ],
    python_requires=">=3.9",
    install_requires=[
        "pyyaml>=6.0",
        "pydantic>=2.0.0",
        "cryptography>=41.0.0",
        "httpx>=0.27.0",
        "fastapi>=0.110.0",
        "uvicorn>=0.23.0",
    ],
    extras_require={
        "dev": [
            "black>=23.0.0",
            "flake8>=6.0.0",
            "mypy>=1.4.0",
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
            "pytest-cov>=4.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "ara-vault=ara_vault.cli:main",
        ],
    },
)
