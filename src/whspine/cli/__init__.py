"""Operator CLI (``warehouse-spine``), called by cron and by hand."""
