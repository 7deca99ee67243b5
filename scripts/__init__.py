"""Operator scripts for the panel billing engine."""
