"""Background tasks (Celery). Importing this package does not start a worker."""
