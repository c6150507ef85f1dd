"""
Analysis package for soilrisk.

Rating, aggregation, classification and report assembly. Nothing in here
touches the database.
"""
