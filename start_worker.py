#!/usr/bin/env python
import logging

# Importing app configures logging and builds the Celery app
from app import celery

if __name__ == '__main__':
    logging.getLogger('seo_health').info("Starting Celery worker...")
    # Without a broker URL the worker reads from the celery_broker/* directories
    celery.worker_main(['worker', '--loglevel=info'])
