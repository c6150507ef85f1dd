"""Configuration, logging, persistence and data-source services."""
