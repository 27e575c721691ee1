"""HTTP service for uploading, listing and deleting SCORM packages."""
