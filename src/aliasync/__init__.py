"""
aliasync: keep cloud alias IP ranges in step with Kubernetes pod ranges.
"""

__version__ = "0.1.0"
