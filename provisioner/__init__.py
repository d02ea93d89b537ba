"""MinIO provisioner — converge a host into a running MinIO installation."""

__version__ = "0.1.0"
