"""locgraph: location-type resolution for dataflow operator graphs."""

__version__ = "0.1.0"
