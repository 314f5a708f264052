"""shootops: orchestration of externally reconciled shoot resources."""

__version__ = "0.1.0"
