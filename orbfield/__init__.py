"""Drifting orbs, a sculpted point cloud and per-orb notes."""

__version__ = "0.1.0"
