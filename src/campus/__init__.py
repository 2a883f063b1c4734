"""Campus: tenant-scoped read-model caching for the Campus LMS backend."""

__version__ = "0.1.0"
