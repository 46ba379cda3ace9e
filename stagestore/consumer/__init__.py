"""Broker-facing entry points for the stage store consumer."""
