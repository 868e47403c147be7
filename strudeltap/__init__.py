"""Non-invasive spectral introspection and capture for live audio graphs."""
