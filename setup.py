"""Setup script for Cortex Chat."""

from setuptools import setup, find_packages

setup(
    name="cortex-chat",
    version="1.0.0",
    description="Text and voice chat with hosted language models",
    author="Your Name",
    packages=find_packages(include=["cortex_chat", "cortex_chat.*", "mocks"]),
    python_requires=">=3.11",
    install_requires=[
        "python-dotenv>=1.0.0",
        "google-generativeai>=0.3.0",
        "openai>=1.0.0",
        "elevenlabs>=2.0.0",
        "pygame>=2.5.0",
        "sounddevice>=0.4.6",
        "soundfile>=0.12.0",
        "numpy>=1.24.0",
        "structlog>=23.0.0",
        "click>=8.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "cortex=cortex_chat.cli.main:cli",
        ],
    },
)
