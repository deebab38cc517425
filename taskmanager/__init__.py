"""
Task Manager

Task records with validation, a completion state machine, filtering,
overdue detection and statistics, served over a REST API.
"""

__version__ = "1.0.0"
