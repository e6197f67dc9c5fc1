"""Setup configuration for transcriptq."""

from setuptools import setup, find_packages

setup(
    name="transcriptq",
    version="1.0.0",
    description="Queued, scheduler-driven transcription jobs for large media files",
    author="Your Name",
    packages=find_packages(include=["transcriptq", "transcriptq.*"]),
    install_requires=[
        "click>=8.1.7",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "requests>=2.31.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
        ],
    },
    entry_points={
        "console_scripts": [
            "transcriptq=transcriptq.cli:cli",
        ],
    },
    python_requires=">=3.8",
)
