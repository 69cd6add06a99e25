"""Clients for the external signals a scan collects."""
