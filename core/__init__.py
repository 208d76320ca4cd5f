"""Core timeline engine for merging activity spans into tick-by-tick state.

This package contains the driving iterator, the calculators and their
domain models, isolated from span producers and reporting consumers.
"""
