"""
Student result scraper.

This package fetches result pages from the institute's result site, decodes
their positional table layout into StudentRecord models, and scrapes whole
batches with either a sequential retrying strategy or a paced worker pool.
"""
