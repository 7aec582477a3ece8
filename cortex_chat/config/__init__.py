"""Configuration for Cortex Chat."""
