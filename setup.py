"""
Setup script for tutor-core.

Tutor Core is the adaptive tutoring engine behind the learning
companion. It provides:

1. Mastery Tracking - Bayesian Knowledge Tracing with SM-2 scheduling
2. Adaptive Policy - scaffold levels, recommendations, interleaving
3. Guided Dialogue - Socratic questioning and productive failure

The 'tutor' command is the offline tooling entry point; the HTTP API
is served from tutorcore.api.main:app.
"""

from setuptools import find_packages, setup

setup(
    name="tutor-core",
    version="0.1.0",
    description="Adaptive tutoring engine: knowledge tracing, scaffolding and guided dialogue",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="Right Learning",
    packages=find_packages(include=["tutorcore", "tutorcore.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        "psycopg2-binary>=2.9.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP
        "httpx>=0.25.0",
        "fastapi>=0.100.0",
        "uvicorn>=0.23.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "tutor=tutorcore.cli.tutor_cli:run",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Framework :: FastAPI",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning knowledge-tracing bkt tutoring adaptive education",
)
