"""Resolution modules for infraresolve.

This package turns environment-scoped declarations of network and cluster
entities into a resolved graph: parsing, environment selection, cataloguing,
reference resolution, default derivation, ordering and assembly.
"""
