"""
Adapter layer for the SCORM upload API.

Contains the storage abstraction with local filesystem and S3 implementations.
One backend is chosen per deployment.
"""
