"""
Test suite for site-archive.

This package contains tests for every pipeline stage of the site archive
dump, from path exclusion rules to the finished .tar.gz on disk.

Test Categories:
- Unit tests: Test individual stages and collaborators in isolation
- Integration tests: Run full dumps against temporary site trees
- CLI tests: Argument parsing and exit codes
"""
