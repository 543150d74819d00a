"""
Private registry for versioned provider archives.

Archives are stored on disk under <data_dir>/<host>/<namespace>/<type>/ next
to two tiers of JSON index documents:
* index.json lists the versions that have at least one archive.
* <version>.json maps each os_arch to its archive file (and hashes).
"""

__version__ = "0.1.0"
