"""Utility helpers for codes and pagination."""
