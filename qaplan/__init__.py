"""qaplan - generate QA test plans from Jira tickets and PDF templates"""

__version__ = "0.1.0"
