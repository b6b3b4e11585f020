"""
Setup script for neet-recall.

neet-recall is the review and weakness-tracking engine behind a NEET
flashcard and diagram-quiz app. It provides:

1. SM-2 scheduling of flashcard reviews
2. Concept classification and per-concept mistake aggregation
3. Dashboard stats, weak-concept insights and remediation content

The 'neet-recall' command is a local front end over a SQLite database.
"""

from setuptools import find_packages, setup

setup(
    name="neet-recall",
    version="0.1.0",
    description="Spaced repetition and weak-concept tracking for NEET flashcards",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(include=["neet_recall", "neet_recall.*"]),
    python_requires=">=3.10",
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
            "neet-recall=neet_recall.cli:app",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="neet spaced-repetition sm2 flashcards education",
)
