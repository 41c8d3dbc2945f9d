"""Core of the SPC engine: configuration, logging, errors and chart engines."""
