"""Configuration module. Exports Settings."""

from src.config.settings import Settings

__all__ = ["Settings"]
