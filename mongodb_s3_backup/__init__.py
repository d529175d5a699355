"""Dump a MongoDB database, compress it and ship it to S3."""

__version__ = "0.1.0"
