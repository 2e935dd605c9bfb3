"""Shared schemas, collaborators and utilities for the ticketing pipeline"""
