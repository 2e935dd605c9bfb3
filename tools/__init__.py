"""Operator tools"""
