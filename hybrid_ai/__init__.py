"""Hybrid AI request orchestrator"""

__version__ = "0.1.0"
