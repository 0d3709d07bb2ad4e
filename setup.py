"""
docchat - Setup Configuration

Document conversations over a remote agent service: upload documents, have
them indexed, and hold a multi-turn conversation that persists until it is
explicitly ended.

License: Apache-2.0
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# Core dependencies
core_deps = [
    # Framework core
    "pydantic>=2.11.9",
    "aiohttp>=3.12.15",  # Async transport used by azure-core's aio clients
    "pyyaml>=6.0.2",
    "python-dotenv>=1.0.1",
    # Remote agent service
    "azure-ai-projects>=1.0.0",
    "azure-ai-agents>=1.1.0",
    "azure-identity>=1.23.0",
    # CLI
    "click>=8.1.7",
    "rich>=14.1.0",
    # Logging
    "python-json-logger>=2.0.7,<3",  # v2.x (v3 requires testing)
]

# Development dependencies
dev_deps = [
    # Testing
    "pytest>=8.4.1",
    "pytest-asyncio>=1.0.0",
    "pytest-mock>=3.14.1",
    "pytest-cov>=6.2.1",
    # Code quality
    "black>=25.0.0",
    "flake8>=7.1.0",
    "mypy>=1.13.0",
]

setup(
    name="docchat",
    version="0.1.0",

    # Package description
    description="Multi-turn document conversations over a remote agent service with tracked, reclaimable resources",
    long_description=long_description,
    long_description_content_type="text/markdown",

    # Package discovery
    packages=find_packages(where="src"),
    package_dir={"": "src"},

    # Python version requirement
    python_requires=">=3.10",

    # Dependencies
    install_requires=core_deps,

    # Optional dependencies (extras)
    extras_require={
        "test": [
            "pytest>=8.4.1",
            "pytest-asyncio>=1.0.0",
            "pytest-mock>=3.14.1",
        ],
        "dev": dev_deps,
    },

    # PyPI classifiers
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Programming Language :: Python :: 3 :: Only",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
        "Framework :: AsyncIO",
    ],

    keywords=[
        "ai", "agents", "conversation", "documents", "vector-store",
        "retrieval", "azure", "orchestration",
    ],

    # License
    license="Apache-2.0",

    include_package_data=True,
    zip_safe=False,

    entry_points={
        "console_scripts": [
            "docchat=docchat.cli:main",
        ],
    },
)
