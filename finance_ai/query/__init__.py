"""Query layer: schema registry, query descriptor contract and the client query engine.

Everything here is pure and synchronous; it has no knowledge of the network or the database.
"""
