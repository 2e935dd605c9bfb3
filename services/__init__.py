"""Ticketing pipeline stages"""
