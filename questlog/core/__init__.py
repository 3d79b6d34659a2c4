"""Configuration, logging, errors and storage primitives."""
