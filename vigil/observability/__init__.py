"""Structured logging and Prometheus counters."""
