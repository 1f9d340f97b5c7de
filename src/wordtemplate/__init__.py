"""Document template engine for Word (.docx) packages."""

__version__ = "0.1.0"
