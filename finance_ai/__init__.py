"""Finance AI: a Russian-language table assistant over clients, contacts and tenders.

The assistant translates natural-language requests into a structured query descriptor, which is
then applied both against the external row store and against the in-memory grid.
"""
