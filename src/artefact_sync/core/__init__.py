"""Core library: content rendering, GitHub publishing, stores and configuration."""
