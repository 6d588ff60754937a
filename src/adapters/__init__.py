"""Adapters layer for Intake-Relay.

This module contains input/output adapters that interface with external systems.
Adapters implement Port interfaces defined in the domain layer: storage backends
for the record collections and sources for raw form exports.
"""
