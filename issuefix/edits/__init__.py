"""Structured line edits and their application to a working copy."""
