"""branchpilot: open pull requests for branches declared in scheduled Markdown tickets."""

__version__ = "0.1.0"
