"""Shared test fixtures for the RestGate suite."""
