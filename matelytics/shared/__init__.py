"""Shared models, errors and utilities for matelytics."""
