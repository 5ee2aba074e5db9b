"""Copilot CLI session launcher with a cross-process active-session registry."""
