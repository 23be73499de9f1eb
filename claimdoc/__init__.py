"""
ClaimDoc Engine - Medical Documentation Review, Enhancement and Coding Service

A FastAPI-based service that transcribes encounters, reviews doctor notes and
turns them into structured, ICD-10/CPT coded clinical notes through a
multi-stage LLM pipeline, with partner (ClaimKit) integration.
"""

__version__ = "1.0.0"
