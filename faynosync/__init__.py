"""
faynosync

Command-line client for publishing application builds to a faynoSync
server: packages local files, release metadata and a changelog into a single
authenticated multipart upload.

Subpackages:
- uploader: upload argument parsing, changelog resolution, streaming
  multipart body, HTTP submission and response interpretation
- utils: logging and settings helpers
"""

__version__ = "0.1.0"
