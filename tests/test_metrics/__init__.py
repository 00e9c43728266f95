"""Tests for Prometheus metrics."""
