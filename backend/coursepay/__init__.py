"""Course payment settlement backend."""
