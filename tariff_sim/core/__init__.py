"""Sampling, statistics and validation building blocks."""
