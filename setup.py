"""
Setup script for abacus-mastery-engine.

The mastery engine is the adaptive core of the abacus practice platform.
It serves three roles:

1. Skill Tracking - Bayesian Knowledge Tracing per player and skill
2. Readiness Gate - Four-dimension check before progressing past a skill
3. Session Planning - Remediation / progression / maintenance choice, plus
   anomaly flags for teacher review

The 'mastery-engine' command is the CLI entry point.
"""

from setuptools import find_packages, setup

setup(
    name="abacus-mastery-engine",
    version="0.1.0",
    description="Adaptive skill mastery and session planning engine for abacus practice",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["config"],
    python_requires=">=3.11",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "mastery-engine=mastery_engine.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning abacus bayesian-knowledge-tracing mastery education",
)
