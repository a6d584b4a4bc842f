"""Bridges between rootline and the systems it publishes to.

Modules
-------
content_store
    Content-addressed store over the kubo HTTP RPC API: existence probes,
    uploads with pinned hashing parameters, hash-only dry runs.
gateway
    Read path for published content through a subdomain HTTP gateway.
registry
    The compare-and-swap root registry.  Ships a SQLite backend whose
    update log is hash-chained and Ed25519-signed.
crypto_bridge
    Ed25519 keys and signatures via PyNaCl.  Verification fails closed.
memory
    In-process content store and registry for tests and dry runs.
"""
