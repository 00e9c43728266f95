"""Tests for matching, formatting and delivery of notifications."""
