"""Pipeline utilities"""
