"""Tutoring session lifecycle: state table, pure planner, orchestrating service."""
