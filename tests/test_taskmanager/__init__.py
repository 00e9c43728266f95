"""Tests for the cron task manager and job handlers."""
