"""cerrla — command line front end of the relational rule learner."""

__version__ = "0.1.0"
