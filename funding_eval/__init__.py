"""Evaluation pipeline for crowdfunding success classifiers."""

__version__ = "0.1.0"
