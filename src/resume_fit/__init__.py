"""Budget-constrained resume selection and repair engine."""

__version__ = "0.1.0"
