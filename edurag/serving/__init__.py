"""Pipeline orchestration and query sessions."""
