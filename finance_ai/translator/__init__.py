"""Natural-language translator.

The translator turns a Russian chat message (plus prior turns) into a Query Descriptor. The
language model is only allowed to produce descriptor JSON; everything it returns is repaired and
validated before use, and relative periods are recomputed deterministically.
"""
