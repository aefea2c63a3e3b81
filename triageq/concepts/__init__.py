"""Concepts - user-facing filter presets"""
