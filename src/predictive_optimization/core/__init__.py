"""Shared infrastructure: exceptions, logging, periodic tasks and model registries."""
