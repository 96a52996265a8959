"""Tests for pyatwatcher."""
