"""Celery wiring for the background job table.

The API only ever writes rows to background_jobs; these tasks drain them and
run the periodic maintenance on a beat schedule.
"""
