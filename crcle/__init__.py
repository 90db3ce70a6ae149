"""
Crcle - ephemeral, time-boxed group photo albums.

Server side: circle lifecycle, membership, photo ingestion, friend graph and
scheduled cleanup. Client side (``crcle.client``): the snapshot-driven
mirror, countdowns and auto-save engine.
"""
