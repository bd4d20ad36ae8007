"""Configuration and result data models."""
