"""I/O layer: Parquet schemas for run artifacts."""
