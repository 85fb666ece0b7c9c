"""Data module - raw loading, column schema and department names."""
