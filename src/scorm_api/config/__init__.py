"""
Configuration management for the SCORM upload API.

Contains the Pydantic settings model and the cached settings accessor.
"""
