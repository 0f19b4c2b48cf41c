"""
Core extraction engine.

The `ExtractionEngine` is the entry point: each submitted job becomes an
`ExtractionJob` that probes the file, lets the `StreamPlanner` derive tasks,
runs them (audio through the `FallbackCascade`) and hands the surviving files
to the `ResultPackager`.
"""
