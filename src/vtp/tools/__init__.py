"""Helpers for driving external media tools."""
