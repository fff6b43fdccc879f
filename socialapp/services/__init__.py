"""Service layer: one package per domain, each exposing a service class."""
