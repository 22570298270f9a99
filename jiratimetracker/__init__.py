"""Jira time tracker - track time against Jira issues from the terminal."""

__version__ = "0.2.0"
