"""Scheduler module for the recurring student sync.

A single job runs on the schedule stored in ``SyncConfig``:
  - fetch contest and submission history for every student
  - refresh ratings and derived problem statistics
  - send inactivity reminders based on the fresh data

The schedule is re-armed whenever the config changes and after every run.
"""
