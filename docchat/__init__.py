"""docchat - retrieval-augmented chat over uploaded documents."""

__version__ = "0.1.0"
