"""Tests for Cortex Chat."""
