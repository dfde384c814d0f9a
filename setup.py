"""
zkvoid Setup
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read() if f else ""

setup(
    name="zkvoid",
    version="1.0.0",
    author="zkvoid developers",
    description="Fixed-denomination privacy pool core: Poseidon Merkle accumulator, notes, nullifiers and withdrawal gate",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["zkvoid", "zkvoid.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pycryptodome>=3.19.0",
        "aiosqlite>=0.19.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-timeout>=2.2.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "zkvoid=zkvoid.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Security :: Cryptography",
    ],
    keywords="zero-knowledge mixer merkle poseidon nullifier groth16",
)
