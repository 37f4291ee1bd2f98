"""
Deadlines module - Application deadline evaluation and enforcement.

- ``evaluator``: pure deadline classification and listing filters
- ``service``: expiry sweep, status summary, deadline reminders
- ``jobs``: scheduled sweep and reminders
"""
