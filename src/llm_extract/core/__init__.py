"""Core types, events and errors shared across the extraction engine."""
