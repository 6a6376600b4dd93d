"""Application package for the CyberWhisper learning platform backend.

This package exposes the service, repository, storage and model modules
used by the FastAPI application. The media lifecycle manager
(`cyberwhisper.media`) and the query builder (`cyberwhisper.query`) hold
the logic every media-backed entity shares; the other modules are thin
wrappers around them.
"""
