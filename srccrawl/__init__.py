"""Dependency-graph crawler that fetches, builds and checks every package it finds."""

__version__ = "0.1.0"
