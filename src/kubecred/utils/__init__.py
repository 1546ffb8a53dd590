"""Shared utilities for kubecred."""
